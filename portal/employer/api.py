from flask import session

from . import employer_bp
from ..api_client import get_client
from ..auth.decorators import login_required, role_required
from ..relationships import connection_counts
from ..services import directory
from ..views import json_errors, max_workers, register_party_routes, success

register_party_routes(employer_bp, 'employer', 'merchant')
register_party_routes(employer_bp, 'employer', 'underwriter')
# Employees are clients linked through an employer-client request
register_party_routes(employer_bp, 'employer', 'client', segment='employees', request_type='employer-client')


@employer_bp.route('/overview', methods=['GET'])
@login_required
@role_required('employer')
@json_errors
def overview():
    counts = connection_counts(get_client().list_requests(), session['user_id'])
    return success(connection_counts=counts)


@employer_bp.route('/transactions', methods=['GET'])
@login_required
@role_required('employer')
@json_errors
def employee_transactions():
    """Transactions paid by or to any client employed by the logged-in employer, newest first."""
    client = get_client()
    employees = directory.list_profiles(client, 'client', employer_id=session['user_id'])
    transactions = directory.transactions_for_users(client, [e.user_id for e in employees], max_workers())
    users = directory.user_map(client)
    return success(
        transactions=directory.enrich_transactions(transactions, users),
        employees=len(employees),
    )
