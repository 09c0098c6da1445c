"""Resolution of links between role-tagged parties.

Two parties are *linked* when the API holds an approved ``Request`` between
them. The request's ``request_type`` is a hyphenated pair such as
``"employer-merchant"``; its halves may appear in either order, so
``"merchant-employer"`` names the same relationship. A party is matched on
both its role and its id: a merchant and an employer that happen to share a
user id are never confused.

Everything here except :func:`link_status` and :func:`request_link` is a pure
function over an already fetched list of requests.
"""
import logging
from collections import namedtuple

from .models import ROLES, Request

logger = logging.getLogger(__name__)

PENDING = "pending"
APPROVED = "approved"

# Plural keys used in connection counts
COUNT_KEYS = {
    "merchant": "merchants",
    "underwriter": "underwriters",
    "employer": "employers",
    "client": "clients",
}


class Party(namedtuple("Party", "role id")):
    """A participant in a request, e.g. ``Party("merchant", "42")``."""

    __slots__ = ()

    def __new__(cls, role, id):
        role = (role or "").strip().lower()
        return super().__new__(cls, role, None if id is None else str(id))

    @classmethod
    def parse(cls, value):
        """Build a party from ``"role:id"``."""
        role, sep, id_ = (value or "").partition(":")
        if not sep or not role or not id_:
            raise ValueError(f"Expected role:id, got {value!r}")
        return cls(role, id_)


class LinkRequestBlocked(Exception):
    """A link request was not sent because one is pending or the parties are already linked."""

    def __init__(self, message, existing=None):
        super().__init__(message)
        self.message = message
        self.existing = existing


def _as_request(value):
    return value if isinstance(value, Request) else Request.from_dict(value)


def as_requests(rows):
    return [_as_request(r) for r in rows or []]


def _type_halves(request_type):
    halves = (request_type or "").strip().lower().split("-")
    if len(halves) != 2 or not all(halves):
        return None
    return sorted(halves)


def same_request_type(a, b):
    """True when both strings name the same pair of roles, in any order."""
    left, right = _type_halves(a), _type_halves(b)
    if left is None or right is None:
        return False
    return left == right


def default_request_type(requester, recipient):
    return f"{requester.role}-{recipient.role}"


def involves(request, party):
    """True when ``party`` is the requester or the recipient of ``request``."""
    if party.id is None:
        return False
    return (
        (request.requester_type == party.role and request.requester_id == party.id)
        or (request.recipient_type == party.role and request.recipient_id == party.id)
    )


def matching_requests(requests, request_type, first, second, status=None):
    """Requests of ``request_type`` between ``first`` and ``second``, in either direction."""
    matches = []
    for request in as_requests(requests):
        if not same_request_type(request.request_type, request_type):
            continue
        if status is not None and request.status != status:
            continue
        if involves(request, first) and involves(request, second):
            matches.append(request)
    return matches


def is_linked(requests, request_type, first, second):
    return bool(matching_requests(requests, request_type, first, second, status=APPROVED))


def has_pending(requests, request_type, first, second):
    return bool(matching_requests(requests, request_type, first, second, status=PENDING))


def counterpart(request, role):
    """Id of the party playing ``role`` in ``request``."""
    request = _as_request(request)
    if request.recipient_type == role:
        return request.recipient_id
    return request.requester_id


def other_party(request, user_id):
    """The party on the other side of ``request`` from ``user_id``, or None."""
    if request.requester_id == user_id and request.recipient_id != user_id:
        return Party(request.recipient_type, request.recipient_id)
    if request.recipient_id == user_id and request.requester_id != user_id:
        return Party(request.requester_type, request.requester_id)
    return None


def connection_counts(requests, user_id):
    """Approved connections of ``user_id`` counted per role of the other party."""
    counts = {key: 0 for key in COUNT_KEYS.values()}
    if user_id is None or user_id == "":
        return counts
    user_id = str(user_id)
    for request in as_requests(requests):
        if request.status != APPROVED:
            continue
        other = other_party(request, user_id)
        if other is not None and other.role in COUNT_KEYS:
            counts[COUNT_KEYS[other.role]] += 1
    return counts


def linked_ids(requests, party, other_role):
    """Ids of every ``other_role`` party holding an approved request with ``party``."""
    seen = []
    for request in as_requests(requests):
        if request.status != APPROVED or not involves(request, party):
            continue
        if request.requester_type == other_role and request.recipient_type == other_role:
            # both sides share the role, take whichever one is not the party
            candidate = request.recipient_id if request.requester_id == party.id else request.requester_id
        elif request.requester_type == other_role:
            candidate = request.requester_id
        elif request.recipient_type == other_role:
            candidate = request.recipient_id
        else:
            continue
        if candidate and candidate != party.id and candidate not in seen:
            seen.append(candidate)
    return seen


def link_status(client, request_type, first, second):
    """Fetch every request and report whether the two parties are linked.

    An upstream failure propagates as ``ApiError``; it is never read as "not linked".
    """
    return is_linked(client.list_requests(), request_type, first, second)


def request_link(client, requester, recipient, request_type=None):
    """Ask ``recipient`` to link with ``requester``.

    Refuses with :class:`LinkRequestBlocked`, without posting anything, when a
    request for the pair is already pending or the pair is already linked.
    Returns whatever the API answers to ``POST /requests``.
    """
    if requester.id is None:
        raise ValueError(f"{requester.role.capitalize() or 'Requester'} not authenticated")
    if recipient.id is None:
        raise ValueError(f"{recipient.role.capitalize() or 'Recipient'} has no associated user ID")
    if recipient.role not in ROLES or requester.role not in ROLES:
        raise ValueError("Both parties need a client, merchant, employer or underwriter role")
    if requester == recipient:
        raise ValueError("A party cannot link with itself")

    request_type = request_type or default_request_type(requester, recipient)
    if _type_halves(request_type) is None or not same_request_type(
            request_type, default_request_type(requester, recipient)):
        raise ValueError(f"Request type {request_type!r} does not match {requester.role} and {recipient.role}")

    requests = as_requests(client.list_requests())

    pending = matching_requests(requests, request_type, requester, recipient, status=PENDING)
    if pending:
        logger.info("Link request %s -> %s skipped, request %s is pending", requester, recipient, pending[0].id)
        raise LinkRequestBlocked(f"A pending link request already exists for this {recipient.role}", pending[0])

    approved = matching_requests(requests, request_type, requester, recipient, status=APPROVED)
    if approved:
        raise LinkRequestBlocked(f"You are already linked with this {recipient.role}", approved[0])

    payload = {
        "user_id": requester.id,
        "request_type": request_type,
        "requester_type": requester.role,
        "requester_id": requester.id,
        "recipient_type": recipient.role,
        "recipient_id": recipient.id,
    }
    logger.info("Sending %s link request %s -> %s", request_type, requester, recipient)
    return client.create_request(payload)
