from datetime import timedelta

import pytest

from conftest import make_request


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.get_json()["api"] == "https://api.test"


def test_portal_requires_login(client):
    resp = client.get("/merchant/api/employers")

    assert resp.status_code == 401
    assert resp.get_json() == {"status": "error", "message": "User not authenticated"}


@pytest.mark.parametrize("path", [
    "/admin/api/users",
    "/merchant/api/employers",
    "/employer/api/employees",
    "/underwriter/api/requests/pending",
])
def test_portal_rejects_other_roles(login, path):
    client = login("C1", "client")

    resp = client.get(path)

    assert resp.status_code == 403
    assert resp.get_json()["status"] == "error"


def test_unknown_route_is_json(client):
    resp = client.get("/nowhere")

    assert resp.status_code == 404
    assert resp.get_json()["status"] == "error"


# --- auth ---

def test_login_opens_session_and_forwards_token(client, fake_api):
    fake_api.add("POST", "/sign-in", {
        "token": "api-token",
        "user": {"id": 4, "first_name": "Mo", "last_name": "Shop", "email": "mo@example.com", "user_type": "merchant"},
    })
    fake_api.add("GET", "/transactions", {"transactions": []})
    fake_api.add("GET", "/users", [])

    resp = client.post("/auth/login", json={"email": "mo@example.com", "password": "secret"})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["user"]["id"] == "4"
    assert body["token"]
    assert client.get("/auth/me").get_json()["user"]["user_type"] == "merchant"

    assert client.get("/merchant/api/transactions").status_code == 200
    sent = fake_api.sent("GET", "/transactions")[0]
    assert sent.headers["Authorization"] == "Bearer api-token"
    assert sent.url.params["merchantId"] == "4"


def test_login_requires_credentials(client, fake_api):
    resp = client.post("/auth/login", json={"email": "mo@example.com"})

    assert resp.status_code == 400
    assert fake_api.calls == []


def test_login_passes_through_rejection(client, fake_api):
    fake_api.add("POST", "/sign-in", {"message": "Invalid credentials"}, status=401)

    resp = client.post("/auth/login", json={"email": "mo@example.com", "password": "bad"})

    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Invalid credentials"


def test_logout_clears_session(login):
    client = login("M1", "merchant")

    client.post("/auth/logout")

    assert client.get("/auth/me").status_code == 401


# --- merchant ---

def _employer_directory(fake_api, requests):
    fake_api.add("GET", "/employers", [
        {"id": 5, "user_id": "E1", "organisation_name": "Acme"},
        {"id": 6, "user_id": "E2"},
    ])
    fake_api.add("GET", "/users", [
        {"id": "E1", "first_name": "Eve", "last_name": "Boss", "user_type": "employer"},
        {"id": "E2", "first_name": "Ed", "user_type": "employer"},
    ])
    fake_api.add("GET", "/requests", requests)


def test_merchant_lists_employers_with_link_flags(login, fake_api):
    _employer_directory(fake_api, [make_request("1", ("employer", "E1"), ("merchant", "M1"), "approved")])
    client = login("M1", "merchant")

    resp = client.get("/merchant/api/employers")

    assert resp.status_code == 200
    rows = resp.get_json()["employers"]
    assert [(r["id"], r["name"], r["is_linked"]) for r in rows] == [("5", "Eve Boss", True), ("6", "Ed", False)]


def test_merchant_link_request_is_sent(login, fake_api):
    fake_api.add("GET", "/employer/5", {"id": 5, "user_id": "E1"})
    fake_api.add("GET", "/requests", [])
    fake_api.add("POST", "/requests", {"id": "r9", "status": "pending"}, status=201)
    client = login("M1", "merchant")

    resp = client.post("/merchant/api/employers/5/link")

    assert resp.status_code == 201
    assert resp.get_json()["status"] == "success"
    assert fake_api.sent_json("POST", "/requests") == [{
        "user_id": "M1",
        "request_type": "merchant-employer",
        "requester_type": "merchant",
        "requester_id": "M1",
        "recipient_type": "employer",
        "recipient_id": "E1",
    }]


def test_merchant_link_request_blocked_while_pending(login, fake_api):
    fake_api.add("GET", "/employer/5", {"id": 5, "user_id": "E1"})
    fake_api.add("GET", "/requests", [make_request("1", ("employer", "E1"), ("merchant", "M1"), "pending")])
    client = login("M1", "merchant")

    resp = client.post("/merchant/api/employers/5/link")

    assert resp.status_code == 200
    assert resp.get_json() == {"status": "info", "message": "A pending link request already exists for this employer"}
    assert fake_api.sent("POST", "/requests") == []


def test_merchant_link_aborts_when_requests_unavailable(login, fake_api):
    fake_api.add("GET", "/employer/5", {"id": 5, "user_id": "E1"})
    fake_api.add("GET", "/requests", {"message": "Failed to fetch connections"}, status=503)
    client = login("M1", "merchant")

    resp = client.post("/merchant/api/employers/5/link")

    assert resp.status_code == 502
    assert resp.get_json()["message"] == "Failed to fetch connections"
    assert fake_api.sent("POST", "/requests") == []


def test_merchant_link_to_missing_profile(login, fake_api):
    client = login("M1", "merchant")

    resp = client.post("/merchant/api/underwriters/99/link")

    assert resp.status_code == 404


def test_merchant_employer_detail(login, fake_api):
    fake_api.add("GET", "/employer/5", {"id": 5, "user_id": "E1", "float": 100})
    fake_api.add("GET", "/requests", [
        make_request("1", ("merchant", "M1"), ("employer", "E1"), "approved"),
        make_request("2", ("employer", "E1"), ("client", "C1"), "approved"),
    ])
    fake_api.add("GET", "/user/E1", {"user": {"id": "E1", "first_name": "Eve", "email": "eve@example.com"}})
    fake_api.add("GET", "/user/E1/ratings", {"ratings": [{"rater_id": "C1", "rating": 4}]})
    client = login("M1", "merchant")

    resp = client.get("/merchant/api/employers/5")

    employer = resp.get_json()["employer"]
    assert employer["name"] == "Eve"
    assert employer["phone"] == "N/A"
    assert employer["is_linked"] is True
    assert employer["average_rating"] == 4
    assert employer["connection_counts"] == {"merchants": 1, "underwriters": 0, "employers": 0, "clients": 1}


def test_merchant_adds_store(login, fake_api):
    fake_api.add("GET", "/merchants", [{"id": 10, "user_id": "M1"}])
    fake_api.add("POST", "/create_store", {"message": "created"})
    client = login("M1", "merchant")

    resp = client.post("/merchant/api/stores", json={"location": "Avondale"})

    assert resp.status_code == 201
    assert resp.get_json()["store"]["location"] == "Avondale"


def test_merchant_without_account_gets_400(login, fake_api):
    fake_api.add("GET", "/merchants", [])
    client = login("M1", "merchant")

    resp = client.get("/merchant/api/stores")

    assert resp.status_code == 400
    assert resp.get_json()["message"] == "No merchant account found for this user"


def test_merchant_processed_payments(login, fake_api):
    fake_api.add("GET", "/merchants", [{"id": 10, "user_id": "M1"}])
    fake_api.add("GET", "/transactions", {"transactions": [
        {"id": "t1", "merchant": 10, "amount": 100},
        {"id": "t2", "merchant": 11, "amount": 50},
        {"id": "t3", "merchant": "10", "amount": 20},
    ]})
    client = login("M1", "merchant")

    body = client.get("/merchant/api/processed-payments").get_json()

    assert body["transactions"] == 2
    assert body["total_amount"] == 120
    assert body["total_fees"] == 6


# --- employer ---

def test_employer_links_employee_with_employer_client_type(login, fake_api):
    fake_api.add("GET", "/client/7", {"id": 7, "user_id": "C1"})
    fake_api.add("GET", "/requests", [make_request("1", ("merchant", "M1"), ("client", "C1"), "approved")])
    fake_api.add("POST", "/requests", {"id": "r2"})
    client = login("E1", "employer")

    resp = client.post("/employer/api/employees/7/link")

    assert resp.status_code == 201
    sent = fake_api.sent_json("POST", "/requests")[0]
    assert sent["request_type"] == "employer-client"
    assert sent["recipient_id"] == "C1"


def test_employer_already_linked_is_info(login, fake_api):
    fake_api.add("GET", "/underwriter/3", {"id": 3, "user_id": "U1"})
    fake_api.add("GET", "/requests", [make_request("1", ("underwriter", "U1"), ("employer", "E1"), "approved")])
    client = login("E1", "employer")

    resp = client.post("/employer/api/underwriters/3/link")

    assert resp.get_json() == {"status": "info", "message": "You are already linked with this underwriter"}


def test_employer_overview_counts(login, fake_api):
    fake_api.add("GET", "/requests", [
        make_request("1", ("employer", "E1"), ("client", "C1"), "approved"),
        make_request("2", ("employer", "E1"), ("client", "C2"), "approved"),
        make_request("3", ("merchant", "M1"), ("employer", "E1"), "pending"),
    ])
    client = login("E1", "employer")

    counts = client.get("/employer/api/overview").get_json()["connection_counts"]

    assert counts == {"merchants": 0, "underwriters": 0, "employers": 0, "clients": 2}


# --- underwriter ---

def _pending(fake_api):
    fake_api.add("GET", "/requests/pending/U1", {"requests": [
        make_request("11", ("client", "C1"), ("underwriter", "U1"), "pending"),
        make_request("12", ("merchant", "M1"), ("underwriter", "U1"), "pending"),
    ]})
    fake_api.add("GET", "/user/C1", {"id": "C1", "first_name": "Cleo", "last_name": "Ng", "user_type": "client"})
    fake_api.add("GET", "/user/M1", {"id": "M1", "first_name": "Mo", "organisation_name": "Mo's", "user_type": "merchant"})


def test_underwriter_pending_requests(login, fake_api):
    _pending(fake_api)
    client = login("U1", "underwriter")

    rows = client.get("/underwriter/api/requests/pending?requester_type=merchant").get_json()["requests"]

    assert [r["id"] for r in rows] == ["12"]
    assert rows[0]["requester_name"] == "Mo (Mo's)"


def test_underwriter_approves_request(login, fake_api):
    _pending(fake_api)
    fake_api.add("POST", "/requests/approve", {"message": "approved"})
    client = login("U1", "underwriter")

    resp = client.post("/underwriter/api/requests/11/approve")

    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Request from Cleo Ng has been approved successfully!"
    assert fake_api.sent_json("POST", "/requests/approve") == [{"request_id": "11", "recipient_id": "U1"}]


def test_underwriter_cannot_approve_unknown_request(login, fake_api):
    _pending(fake_api)
    client = login("U1", "underwriter")

    resp = client.post("/underwriter/api/requests/99/approve")

    assert resp.status_code == 404
    assert fake_api.sent("POST", "/requests/approve") == []


# --- client ---

def test_client_rates_a_merchant(login, fake_api):
    fake_api.add("POST", "/rate", {"message": "ok"})
    fake_api.add("GET", "/user/M1/ratings", [{"rater_id": "C1", "rating": 3}, {"rater_id": "C2", "rating": 5}])
    client = login("C1", "client")

    resp = client.post("/client/api/ratings", json={"user_id": "M1", "rating": 3, "comment": "ok"})

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["average_rating"] == 4
    assert body["my_rating"]["rating"] == 3


def test_client_cannot_rate_out_of_range(login, fake_api):
    client = login("C1", "client")

    resp = client.post("/client/api/ratings", json={"user_id": "M1", "rating": 9})

    assert resp.status_code == 400
    assert fake_api.sent("POST", "/rate") == []


def test_client_linked_merchants(login, fake_api):
    fake_api.add("GET", "/users/C1/merchants", {"merchants": [make_request("1", ("merchant", "M1"), ("client", "C1"))]})
    fake_api.add("GET", "/user/M1", {"id": "M1", "first_name": "Mo"})
    fake_api.add("GET", "/merchants", [{"id": 10, "user_id": "M1"}])
    client = login("C1", "client")

    rows = client.get("/client/api/merchants/linked").get_json()["merchants"]

    assert [(r["id"], r["user_id"], r["name"]) for r in rows] == [("10", "M1", "Mo")]


# --- admin ---

def test_admin_edits_status(login, fake_api):
    fake_api.add("PUT", "/edit-client-status/8", {"message": "Client approved"})
    client = login("A1", "admin")

    resp = client.put("/admin/api/clients/8/status", json={"status": "Approved"})

    assert resp.status_code == 200
    assert resp.get_json() == {"status": "success", "message": "Client approved", "id": "8", "new_status": "approved"}


def test_admin_rejects_unknown_status(login, fake_api):
    client = login("A1", "admin")

    resp = client.put("/admin/api/merchants/8/status", json={"status": "pending"})

    assert resp.status_code == 400
    assert fake_api.calls == []


def test_admin_overview_falls_back_to_cache(login, fake_api):
    fake_api.add("GET", "/users", [{"id": "1", "first_name": "Ada"}])
    fake_api.add("GET", "/transactions", {"transactions": [{"id": "t1", "paid_by": "1", "paid_to": "2"}]})
    client = login("A1", "admin")

    first = client.get("/admin/api/overview").get_json()
    fake_api.add("GET", "/transactions", {"message": "down"}, status=500)
    second = client.get("/admin/api/overview").get_json()

    assert first["cached"] is False
    assert second["cached"] is True
    assert second["transactions"] == first["transactions"]


def test_admin_overview_without_cache_reports_error(login, fake_api):
    fake_api.add("GET", "/users", [])
    fake_api.add("GET", "/transactions", {"message": "down"}, status=500)
    client = login("A1", "admin")

    resp = client.get("/admin/api/overview")

    assert resp.status_code == 502
    assert resp.get_json() == {"status": "error", "message": "down"}


def test_admin_report_rejects_reversed_dates(login, fake_api):
    client = login("A1", "admin")

    resp = client.get("/admin/api/reports/transactions?start_date=2024-02-01&end_date=2024-01-01")

    assert resp.status_code == 400
    assert fake_api.calls == []


def test_admin_report_excel_download(login, fake_api):
    fake_api.add("GET", "/transactions", {"transactions": [{"id": "t1", "paid_by": "1", "paid_to": "2", "amount": 5}]})
    fake_api.add("GET", "/users", [])
    client = login("A1", "admin")

    resp = client.get("/admin/api/reports/transactions/excel?start_date=2024-01-01&end_date=2024-01-31")

    assert resp.status_code == 200
    assert resp.headers["Content-Disposition"] == "attachment; filename=transactions_2024-01-01_2024-01-31.xlsx"
    assert resp.data[:2] == b"PK"


def test_admin_clients_linked_underwriters(login, fake_api):
    fake_api.add("GET", "/requests", [
        make_request("1", ("client", "C1"), ("underwriter", "U1"), "approved"),
        make_request("2", ("client", "C2"), ("merchant", "M1"), "approved"),
    ])
    fake_api.add("GET", "/users", [{"id": "C1", "first_name": "Cleo"}])
    client = login("A1", "admin")

    rows = client.get("/admin/api/clients/linked-underwriters").get_json()["relationships"]

    assert [(r["id"], r["requester_first_name"]) for r in rows] == [("1", "Cleo")]


# --- degraded rows and later additions ---

def test_underwriter_pending_requests_survive_missing_requester(login, fake_api):
    fake_api.add("GET", "/requests/pending/U1", {"requests": [
        make_request("11", ("client", "C1"), ("underwriter", "U1"), "pending"),
        make_request("12", ("merchant", "M1"), ("underwriter", "U1"), "pending"),
    ]})
    fake_api.add("GET", "/user/M1", {"id": "M1", "first_name": "Mo", "user_type": "merchant"})
    # /user/C1 is not routed, the fake API answers 404
    client = login("U1", "underwriter")

    resp = client.get("/underwriter/api/requests/pending")

    assert resp.status_code == 200
    rows = resp.get_json()["requests"]
    assert [(r["id"], r["requester_name"]) for r in rows] == [("11", "User C1"), ("12", "Mo")]
    assert rows[0]["requester"] is None


def test_employer_linked_merchants_drop_unresolvable_rows(login, fake_api):
    fake_api.add("GET", "/users/E1/merchants", {"merchants": [
        make_request("1", ("employer", "E1"), ("merchant", "M1")),
        make_request("2", ("merchant", "M2"), ("employer", "E1")),
    ]})
    fake_api.add("GET", "/user/M1", {"id": "M1", "first_name": "Mo"})
    fake_api.add("GET", "/merchants", [{"id": 10, "user_id": "M1"}])
    client = login("E1", "employer")

    resp = client.get("/employer/api/merchants/linked")

    assert resp.status_code == 200
    assert [(r["id"], r["name"]) for r in resp.get_json()["merchants"]] == [("10", "Mo")]


def test_merchant_overview_counts(login, fake_api):
    fake_api.add("GET", "/requests", [
        make_request("1", ("merchant", "M1"), ("employer", "E1"), "approved"),
        make_request("2", ("client", "C1"), ("merchant", "M1"), "approved"),
        make_request("3", ("merchant", "M1"), ("client", "C2"), "pending"),
    ])
    client = login("M1", "merchant")

    counts = client.get("/merchant/api/overview").get_json()["connection_counts"]

    assert counts == {"merchants": 0, "underwriters": 0, "employers": 1, "clients": 1}


def test_merchant_all_clients_fetches_each_user(login, fake_api):
    fake_api.add("GET", "/clients", [
        {"id": 1, "user_id": "C1", "employer_id": 5},
        {"id": 2, "user_id": "C2"},
        {"id": 3},
    ])
    fake_api.add("GET", "/user/C1", {"user": {"id": "C1", "first_name": "Cleo", "last_name": "Ng"}})
    client = login("M1", "merchant")

    resp = client.get("/merchant/api/clients/all")

    assert resp.status_code == 200
    rows = resp.get_json()["clients"]
    assert [(r["id"], r["name"]) for r in rows] == [("1", "Cleo Ng"), ("2", "N/A"), ("3", "N/A")]
    assert rows[0]["employer_id"] == 5
    assert fake_api.sent("GET", "/users") == []


@pytest.mark.parametrize("path", [
    "/admin/api/clients?type=merchant&status=bogus",
    "/admin/api/clients/linked-underwriters?status=bogus",
    "/admin/api/underwriters/linked-employers?status=bogus",
    "/admin/api/merchants/pending-underwriter-approval?status=bogus",
])
def test_admin_rejects_unknown_status_filter(login, fake_api, path):
    fake_api.add("GET", "/requests", [])
    fake_api.add("GET", "/users", [])
    client = login("A1", "admin")

    resp = client.get(path)

    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Unknown status: bogus"


def test_admin_status_filter_is_case_insensitive(login, fake_api):
    fake_api.add("GET", "/requests", [
        make_request("1", ("underwriter", "U1"), ("employer", "E1"), "approved"),
        make_request("2", ("employer", "E2"), ("underwriter", "U1"), "pending"),
    ])
    fake_api.add("GET", "/users", [])
    client = login("A1", "admin")

    rows = client.get("/admin/api/underwriters/linked-employers?status=APPROVED").get_json()["relationships"]

    assert [r["id"] for r in rows] == ["1"]


def test_session_lifetime_comes_from_config(app, client, fake_api):
    fake_api.add("POST", "/sign-in", {"user": {"id": 4, "user_type": "client"}})

    client.post("/auth/login", json={"email": "c@example.com", "password": "pw"})

    assert app.permanent_session_lifetime == timedelta(minutes=20)
    with client.session_transaction() as sess:
        assert sess.permanent is True
        assert "last_activity" not in sess
