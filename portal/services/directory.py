import logging
from concurrent.futures import ThreadPoolExecutor

from ..api_client import ApiError
from ..models import REQUEST_STATUSES, Profile, Transaction, User
from ..relationships import Party, as_requests, counterpart, is_linked, same_request_type

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


def fan_out(func, items, max_workers=DEFAULT_MAX_WORKERS):
    """Run ``func`` over ``items`` on a bounded thread pool, keeping input order."""
    items = list(items)
    if not items:
        return []
    workers = max(1, min(max_workers, len(items)))
    with ThreadPoolExecutor(max_workers=workers) as ex:
        return list(ex.map(func, items))


def user_map(client, user_type=None):
    users = [User.from_dict(u) for u in client.list_users(user_type=user_type)]
    return {u.id: u for u in users if u.id}


def enrich_transactions(transactions, users):
    """Attach payer and payee user records (or None) to each transaction dict."""
    rows = []
    for raw in transactions:
        tx = raw if isinstance(raw, Transaction) else Transaction.from_dict(raw)
        paid_by_user = users.get(tx.paid_by)
        paid_to_user = users.get(tx.paid_to)
        row = tx.to_dict()
        row.update({
            "paid_by_user": paid_by_user.to_dict() if paid_by_user else None,
            "paid_to_user": paid_to_user.to_dict() if paid_to_user else None,
            "paid_by_name": paid_by_user.display_name if paid_by_user else (tx.paid_by or "N/A"),
            "paid_to_name": paid_to_user.display_name if paid_to_user else (tx.paid_to or "N/A"),
        })
        rows.append(row)
    return rows


def _user_fields(user):
    return {
        "name": user.full_name or "N/A",
        "email": user.email or "N/A",
        "phone": user.phone or "N/A",
        "organisation_name": user.organisation_name or "N/A",
    }


_MISSING_USER = {"name": "N/A", "email": "N/A", "phone": "N/A", "organisation_name": "N/A"}


def profile_row(client, profile):
    """Profile dict with the owning user's name fields; missing users degrade to N/A."""
    row = profile.to_dict()
    if not profile.user_id:
        row.update(_MISSING_USER)
        return row
    try:
        row.update(_user_fields(User.from_dict(client.get_user(profile.user_id))))
    except ApiError as e:
        logger.warning("Could not load user %s for %s %s: %s", profile.user_id, profile.role, profile.id, e)
        row.update(_MISSING_USER)
    return row


def enrich_profiles(client, profiles, max_workers=DEFAULT_MAX_WORKERS, users=None):
    """Join each profile with its user.

    When ``users`` (a user map) is given the join is done in memory, otherwise
    each user is fetched on its own with bounded concurrency.
    """
    if users is not None:
        rows = []
        for profile in profiles:
            row = profile.to_dict()
            user = users.get(profile.user_id)
            row.update(_user_fields(user) if user else _MISSING_USER)
            rows.append(row)
        return rows
    return fan_out(lambda p: profile_row(client, p), profiles, max_workers)


def list_profiles(client, role, **filters):
    return [Profile.from_dict(p, role) for p in client.list_profiles(role, **filters)]


def profile_for_user(client, role, user_id):
    """The ``role`` profile owned by ``user_id``, or None."""
    for profile in list_profiles(client, role, user_id=user_id):
        if profile.user_id == str(user_id):
            return profile
    return None


def _linked_row(client, role, user_id):
    try:
        user = User.from_dict(client.get_user(user_id))
        profile = profile_for_user(client, role, user_id)
        if profile is None:
            raise LookupError(f"No {role} record found for user {user_id}")
    except (ApiError, LookupError) as e:
        logger.warning("Dropping linked %s %s: %s", role, user_id, e)
        return None
    row = profile.to_dict()
    row.update(_user_fields(user))
    row["user_id"] = user.id or user_id
    return row


def linked_profiles(client, party, other_role, max_workers=DEFAULT_MAX_WORKERS):
    """Profiles of every ``other_role`` party linked with ``party``.

    Relationship rows that cannot be resolved to a user and a profile are
    dropped rather than failing the whole listing.
    """
    relationships = client.user_relationships(party.id, other_role)
    ids = []
    for rel in relationships:
        other_id = counterpart(rel, other_role)
        if other_id and other_id != party.id and other_id not in ids:
            ids.append(other_id)
    rows = fan_out(lambda uid: _linked_row(client, other_role, uid), ids, max_workers)
    return [r for r in rows if r is not None]


def with_link_flags(rows, requests, request_type, party, other_role):
    """Mark each profile row with ``is_linked`` relative to ``party``."""
    for row in rows:
        other = Party(other_role, row.get("user_id"))
        row["is_linked"] = other.id is not None and is_linked(requests, request_type, party, other)
    return rows


def profile_names(profiles, users, missing="Unknown"):
    """Map each profile id to its owner's full name."""
    names = {}
    for profile in profiles:
        user = users.get(profile.user_id)
        names[profile.id] = (user.full_name if user else "") or missing
    return names


def relationship_rows(requests, users, first_role, second_role, status=None):
    """Requests between two roles, with both parties' names, for the admin relationship tables."""
    if status:
        status = status.lower()
        if status not in REQUEST_STATUSES:
            raise ValueError(f"Unknown status: {status}")
    request_type = f"{first_role}-{second_role}"
    rows = []
    for request in as_requests(requests):
        if not same_request_type(request.request_type, request_type):
            continue
        if status and request.status != status:
            continue
        requester = users.get(request.requester_id)
        recipient = users.get(request.recipient_id)
        rows.append({
            "id": request.id,
            "requester_id": request.requester_id,
            "requester_first_name": requester.first_name if requester else "",
            "requester_last_name": requester.last_name if requester else "",
            "requester_type": request.requester_type,
            "recipient_id": request.recipient_id,
            "recipient_first_name": recipient.first_name if recipient else "",
            "recipient_last_name": recipient.last_name if recipient else "",
            "recipient_type": request.recipient_type,
            "relationship_type": request.request_type,
            "status": request.status,
        })
    return rows


def _valid_transaction(tx):
    return bool(tx.id and tx.paid_by and tx.paid_to and tx.time_stamp)


def _transactions_of(client, user_id):
    try:
        return client.transactions_paid_by(user_id) + client.transactions_paid_to(user_id)
    except ApiError as e:
        logger.warning("Skipping transactions of user %s: %s", user_id, e)
        return []


def transactions_for_users(client, user_ids, max_workers=DEFAULT_MAX_WORKERS):
    """Paid-by and paid-to transactions of several users, de-duplicated by id, newest first."""
    by_id = {}
    for rows in fan_out(lambda uid: _transactions_of(client, uid), [u for u in user_ids if u], max_workers):
        for raw in rows:
            tx = Transaction.from_dict(raw)
            if _valid_transaction(tx):
                by_id[tx.id] = tx
    return sorted(by_id.values(), key=lambda t: str(t.time_stamp), reverse=True)
