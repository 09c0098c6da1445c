import logging

from flask import current_app, request, session

from . import underwriter_bp
from ..api_client import ApiError, get_client
from ..auth.decorators import login_required, role_required
from ..models import Request, User
from ..relationships import connection_counts
from ..services import directory
from ..views import error, json_errors, max_workers, register_party_routes, success

logger = logging.getLogger(__name__)

register_party_routes(underwriter_bp, 'underwriter', 'merchant')
register_party_routes(underwriter_bp, 'underwriter', 'employer')
register_party_routes(underwriter_bp, 'underwriter', 'client')


@underwriter_bp.route('/overview', methods=['GET'])
@login_required
@role_required('underwriter')
@json_errors
def overview():
    counts = connection_counts(get_client().list_requests(), session['user_id'])
    return success(connection_counts=counts)


def _requester_summary(client, user_id):
    # runs on fan_out worker threads, outside the app context
    try:
        user = User.from_dict(client.get_user(user_id))
    except ApiError as e:
        logger.warning("Failed to fetch user %s: %s", user_id, e)
        return None
    if not user.first_name:
        return None
    return {
        'id': user_id,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'organisation_name': user.organisation_name,
        'user_type': user.user_type,
        'email': user.email,
    }


@underwriter_bp.route('/requests/pending', methods=['GET'])
@login_required
@role_required('underwriter')
@json_errors
def pending_requests():
    """
    Link requests waiting for this underwriter's approval.
    Query params (optional): requester_type - client | merchant | employer
    Returns: { status, requests: [ {..., requester} ] }
    """
    client = get_client()
    requests = [Request.from_dict(r) for r in client.pending_requests_for(session['user_id'])]
    requester_type = request.args.get('requester_type')
    if requester_type:
        requests = [r for r in requests if r.requester_type == requester_type]

    requester_ids = []
    for r in requests:
        if r.requester_id and r.requester_id not in requester_ids:
            requester_ids.append(r.requester_id)
    summaries = directory.fan_out(lambda uid: _requester_summary(client, uid), requester_ids, max_workers())
    requesters = dict(zip(requester_ids, summaries))

    rows = []
    for r in requests:
        row = r.to_dict()
        row['requester'] = requesters.get(r.requester_id)
        row['requester_name'] = _display(row['requester'], r.requester_id)
        rows.append(row)
    return success(requests=rows)


def _display(summary, user_id):
    if not summary:
        return f"User {user_id}"
    name = f"{summary['first_name']} {summary['last_name']}".strip()
    if summary.get('organisation_name'):
        name = f"{name} ({summary['organisation_name']})"
    return name


@underwriter_bp.route('/requests/<request_id>/approve', methods=['POST'])
@login_required
@role_required('underwriter')
@json_errors
def approve_request(request_id):
    client = get_client()
    pending = [Request.from_dict(r) for r in client.pending_requests_for(session['user_id'])]
    target = next((r for r in pending if r.id == str(request_id)), None)
    if target is None:
        return error('Pending request not found', 404)
    client.approve_request(target.id, session['user_id'])
    requester_name = _display(_requester_summary(client, target.requester_id), target.requester_id)
    current_app.logger.info(f"Underwriter {session['user_id']} approved request {target.id}")
    return success(message=f"Request from {requester_name} has been approved successfully!", request_id=target.id)


@underwriter_bp.route('/transactions', methods=['GET'])
@login_required
@role_required('underwriter')
@json_errors
def merchant_transactions():
    """Transactions of every merchant underwritten by the logged-in underwriter, newest first."""
    client = get_client()
    merchants = directory.list_profiles(client, 'merchant', underwriter_id=session['user_id'])
    transactions = directory.transactions_for_users(client, [m.user_id for m in merchants], max_workers())
    users = directory.user_map(client)
    return success(
        transactions=directory.enrich_transactions(transactions, users),
        merchants=len(merchants),
    )
