import logging

import httpx
from flask import current_app, g, session

logger = logging.getLogger(__name__)

# Path segment used by each role's list and detail endpoints
PLURAL = {
    "client": "clients",
    "merchant": "merchants",
    "employer": "employers",
    "underwriter": "underwriters",
}

EDITABLE_STATUSES = ("approved", "declined")


class ApiError(Exception):
    """Raised when the Ezitt API is unreachable or answers with a non-2xx status."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(response):
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "response", "error"):
            if body.get(key):
                return str(body[key])
    text = (response.text or "").strip()
    return text or response.reason_phrase or f"HTTP {response.status_code}"


def _check_role(role):
    if role not in PLURAL:
        raise ValueError(f"Unknown role: {role}")
    return role


class EzittClient:
    """Thin wrapper over the Ezitt REST API. One method per endpoint the portals consume."""

    def __init__(self, base_url, timeout=10.0, transport=None, token=None):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.base_url = base_url.rstrip("/")
        self._http = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport, headers=headers)

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _send(self, method, path, params=None, json=None):
        if params:
            params = {k: v for k, v in params.items() if v is not None and v != ""}
        try:
            response = self._http.request(method, path, params=params or None, json=json)
        except httpx.HTTPError as e:
            logger.error("Ezitt API %s %s failed: %s", method, path, e)
            raise ApiError(f"Could not reach the Ezitt API: {e}") from e
        if response.is_error:
            message = _error_message(response)
            logger.error("Ezitt API %s %s returned %s: %s", method, path, response.status_code, message)
            raise ApiError(message, response.status_code)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def _list(self, path, params=None, key=None):
        data = self._send("GET", path, params=params)
        if isinstance(data, dict) and key:
            data = data.get(key)
        return data if isinstance(data, list) else []

    # --- requests ---
    def list_requests(self):
        return self._list("/requests")

    def get_request(self, request_id):
        return self._send("GET", f"/requests/{request_id}")

    def pending_requests_for(self, user_id):
        return self._list(f"/requests/pending/{user_id}", key="requests")

    def create_request(self, payload):
        return self._send("POST", "/requests", json=payload)

    def approve_request(self, request_id, recipient_id):
        return self._send("POST", "/requests/approve", json={"request_id": request_id, "recipient_id": recipient_id})

    # --- users ---
    def list_users(self, user_type=None):
        return self._list("/users", params={"user_type": user_type})

    def get_user(self, user_id):
        data = self._send("GET", f"/user/{user_id}")
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            return data["user"]
        return data

    def user_relationships(self, user_id, role):
        """Approved relationships of ``user_id`` with parties of ``role`` (GET /users/<id>/<role>s)."""
        plural = PLURAL[_check_role(role)]
        return self._list(f"/users/{user_id}/{plural}", key=plural)

    def sign_in(self, email, password):
        return self._send("POST", "/sign-in", json={"email": email, "password": password})

    # --- role profiles ---
    def list_profiles(self, role, **filters):
        return self._list(f"/{PLURAL[_check_role(role)]}", params=filters)

    def get_profile(self, role, profile_id):
        return self._send("GET", f"/{_check_role(role)}/{profile_id}")

    def edit_status(self, role, profile_id, status):
        _check_role(role)
        if status not in EDITABLE_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(EDITABLE_STATUSES)}")
        return self._send("PUT", f"/edit-{role}-status/{profile_id}", json={"status": status})

    # --- stores ---
    def list_stores(self):
        return self._list("/stores")

    def create_store(self, payload):
        return self._send("POST", "/create_store", json=payload)

    # --- transactions ---
    def list_transactions(self, **params):
        return self._list("/transactions", params=params, key="transactions")

    def transactions_page(self, page, limit):
        """One page of transactions plus the total count when the API reports it."""
        data = self._send("GET", "/transactions", params={"page": page, "limit": limit})
        if isinstance(data, dict):
            rows = data.get("transactions") or []
            return rows, data.get("total", len(rows))
        rows = data if isinstance(data, list) else []
        return rows, len(rows)

    def transactions_paid_by(self, user_id):
        return self._list(f"/transactions_paid_by/{user_id}", key="transactions")

    def transactions_paid_to(self, user_id):
        return self._list(f"/transactions_paid_to/{user_id}", key="transactions")

    # --- ratings ---
    def rate(self, payload):
        return self._send("POST", "/rate", json=payload)

    def user_ratings(self, user_id):
        data = self._send("GET", f"/user/{user_id}/ratings")
        if isinstance(data, dict):
            return data.get("ratings") or []
        return data if isinstance(data, list) else []


def get_client():
    """Return the request-scoped API client, creating it on first use."""
    if "ezitt_client" not in g:
        cfg = current_app.config
        g.ezitt_client = EzittClient(
            cfg["EZITT_API_BASE_URL"],
            timeout=cfg.get("EZITT_API_TIMEOUT", 10.0),
            transport=cfg.get("EZITT_API_TRANSPORT"),
            token=session.get("api_token"),
        )
    return g.ezitt_client


def close_client(exc=None):
    client = g.pop("ezitt_client", None)
    if client is not None:
        client.close()
