from flask import current_app, make_response, request, session

from . import admin_bp
from ..api_client import ApiError, get_client
from ..auth.decorators import login_required, role_required
from ..models import REQUEST_STATUSES, User
from ..services import directory, ratings, reports
from ..views import error, json_errors, max_workers, party_detail, success

LINK_TYPES = ("merchant", "employer", "underwriter")


def _cache():
    return current_app.extensions["transaction_cache"]


@admin_bp.route('/overview', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def overview():
    """
    Latest transactions for the overview cards.
    Query params (optional): limit (default 6)
    Returns: { status, transactions[], cached }
    Falls back to the last page seen when the API is unavailable.
    """
    limit = request.args.get('limit', 6, type=int)
    client = get_client()
    key = f"overview:{limit}"
    try:
        users = directory.user_map(client)
        rows = directory.enrich_transactions(client.list_transactions(limit=limit), users)
    except ApiError as e:
        cached = _cache().get(key)
        if cached is None:
            raise
        current_app.logger.warning(f"Serving cached overview transactions: {e.message}")
        return success(transactions=cached, cached=True)
    _cache().put(key, rows)
    return success(transactions=rows, cached=False)


# --- users ---

@admin_bp.route('/users', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def list_users():
    user_type = request.args.get('user_type')
    users = [User.from_dict(u).to_dict() for u in get_client().list_users(user_type=user_type)]
    return success(users=users)


@admin_bp.route('/users/<user_id>', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def get_user(user_id):
    client = get_client()
    user = User.from_dict(client.get_user(user_id)).to_dict()
    summary = ratings.summarize(ratings.ratings_for(client, user_id), empty_average=None)
    user.update(summary)
    return success(user=user)


# --- clients ---

@admin_bp.route('/clients', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def list_clients():
    """
    Client table.
    Query params (optional):
      type   - not-linked | merchant | employer | underwriter
      status - approved | pending | declined, applied to <type>_status
    """
    link_type = request.args.get('type')
    status = (request.args.get('status') or '').lower()
    client = get_client()
    if link_type and link_type != 'not-linked' and link_type not in LINK_TYPES:
        return error(f"Unknown client type: {link_type}", 400)
    if status and status not in REQUEST_STATUSES:
        return error(f"Unknown status: {status}", 400)
    profiles = directory.list_profiles(client, 'client', type=link_type)
    if status and link_type in LINK_TYPES:
        field = f"{link_type}_status"
        profiles = [p for p in profiles if str(p.get(field, '')).lower() == status]
    rows = directory.enrich_profiles(client, profiles, users=directory.user_map(client))
    return success(clients=rows)


@admin_bp.route('/clients/linked-by-both', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def clients_linked_by_both():
    client = get_client()
    profiles = [
        p for p in directory.list_profiles(client, 'client')
        if p.get('employer_status') == 'approved' and p.get('merchant_status') == 'approved'
    ]
    rows = directory.enrich_profiles(client, profiles, users=directory.user_map(client))
    return success(clients=rows)


@admin_bp.route('/clients/linked-underwriters', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def clients_linked_underwriters():
    client = get_client()
    rows = directory.relationship_rows(
        client.list_requests(), directory.user_map(client), 'underwriter', 'client',
        status=request.args.get('status'))
    return success(relationships=rows)


@admin_bp.route('/clients/<client_id>', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def get_client_detail(client_id):
    return success(client=party_detail(get_client(), 'client', client_id))


# --- merchants ---

@admin_bp.route('/merchants', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def list_merchants():
    client = get_client()
    profiles = directory.list_profiles(client, 'merchant')
    rows = directory.enrich_profiles(client, profiles, users=directory.user_map(client))
    return success(merchants=rows)


@admin_bp.route('/merchants/pending-underwriter-approval', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def merchants_pending_underwriter_approval():
    """
    Merchants with their underwriter approval state.
    Query params (optional): status - approved | pending | declined (underwriter_status)
    """
    client = get_client()
    status = (request.args.get('status') or '').lower()
    if status and status not in REQUEST_STATUSES:
        return error(f"Unknown status: {status}", 400)
    users = directory.user_map(client)
    underwriters = directory.list_profiles(client, 'underwriter')
    underwriter_names = directory.profile_names(underwriters, users)
    merchants = directory.list_profiles(client, 'merchant')
    if status:
        merchants = [m for m in merchants if str(m.get('underwriter_status') or '').lower() == status]
    rows = directory.enrich_profiles(client, merchants, users=users)
    for row in rows:
        underwriter_id = row.get('underwriter_id')
        row['underwriter_name'] = underwriter_names.get(str(underwriter_id), 'Unknown') if underwriter_id else 'N/A'
    return success(merchants=rows)


@admin_bp.route('/merchants/<merchant_id>', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def get_merchant_detail(merchant_id):
    return success(merchant=party_detail(get_client(), 'merchant', merchant_id))


# --- employers / underwriters ---

@admin_bp.route('/employers', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def list_employers():
    client = get_client()
    profiles = directory.list_profiles(client, 'employer')
    rows = directory.enrich_profiles(client, profiles, users=directory.user_map(client))
    return success(employers=rows)


@admin_bp.route('/employers/<employer_id>', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def get_employer_detail(employer_id):
    return success(employer=party_detail(get_client(), 'employer', employer_id))


@admin_bp.route('/underwriters', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def list_underwriters():
    client = get_client()
    profiles = directory.list_profiles(client, 'underwriter')
    rows = directory.enrich_profiles(client, profiles, users=directory.user_map(client))
    return success(underwriters=rows)


@admin_bp.route('/underwriters/linked-employers', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def underwriters_linked_employers():
    client = get_client()
    rows = directory.relationship_rows(
        client.list_requests(), directory.user_map(client), 'underwriter', 'employer',
        status=request.args.get('status'))
    return success(relationships=rows)


@admin_bp.route('/<any(clients, merchants, employers):kind>/<profile_id>/status', methods=['PUT'])
@login_required
@role_required('admin')
@json_errors
def edit_status(kind, profile_id):
    """
    Approve or decline a client, merchant or employer.
    Body: { status: approved | declined }
    """
    role = kind[:-1]
    status = ((request.get_json(silent=True) or {}).get('status') or '').lower()
    result = get_client().edit_status(role, profile_id, status)
    message = result.get('message') if isinstance(result, dict) else None
    current_app.logger.info(f"Admin {session.get('user_id')} set {role} {profile_id} to {status}")
    return success(message=message or 'Status updated successfully', id=profile_id, new_status=status)


# --- stores / transactions ---

@admin_bp.route('/stores', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def list_stores():
    client = get_client()
    users = directory.user_map(client)
    merchant_names = directory.profile_names(directory.list_profiles(client, 'merchant'), users, 'Unknown Merchant')
    stores = []
    for store in client.list_stores():
        row = {
            'id': store.get('id'),
            'merchant': store.get('merchant'),
            'store_code': store.get('store_code'),
            'location': store.get('location'),
        }
        row['merchant_name'] = merchant_names.get(str(row['merchant']), 'Unknown Merchant')
        stores.append(row)
    location = (request.args.get('location') or '').strip().lower()
    if location:
        stores = [s for s in stores if location in str(s.get('location') or '').lower()]
    return success(stores=stores)


@admin_bp.route('/transactions', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def list_transactions():
    """
    Paged transactions with payer/payee names.
    Query params (optional): page (1-based, default 1), limit (default 10)
    """
    page = max(request.args.get('page', 1, type=int), 1)
    limit = min(max(request.args.get('limit', 10, type=int), 1), 100)
    client = get_client()
    rows, total = client.transactions_page(page, limit)
    users = directory.user_map(client)
    return success(transactions=directory.enrich_transactions(rows, users), total=total, page=page, limit=limit)


# --- ratings ---

@admin_bp.route('/ratings', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def list_ratings():
    rows = ratings.rateable_users(
        get_client(), session['user_id'], session.get('role'),
        user_type=request.args.get('user_type'),
        search=request.args.get('search'),
        max_workers=max_workers(),
    )
    return success(users=rows)


@admin_bp.route('/ratings', methods=['POST'])
@login_required
@role_required('admin')
@json_errors
def rate():
    data = request.get_json(silent=True) or {}
    summary = ratings.rate_user(
        get_client(), session['user_id'], data.get('user_id'), data.get('rating'), data.get('comment'))
    return success(201, message='Rating submitted', **summary)


# --- reports ---

def _report_args():
    return dict(
        start_date=request.args.get('start_date'),
        end_date=request.args.get('end_date'),
        employer_id=request.args.get('employer_id'),
        merchant_id=request.args.get('merchant_id'),
    )


@admin_bp.route('/reports/transactions', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def transactions_report():
    """
    Transactions between two dates.
    Query params: start_date, end_date (YYYY-MM-DD, required), employer_id, merchant_id (optional)
    """
    client = get_client()
    transactions = reports.transactions_report(client, **_report_args())
    users = directory.user_map(client)
    return success(
        transactions=directory.enrich_transactions(transactions, users),
        totals=reports.report_totals(transactions),
    )


@admin_bp.route('/reports/transactions/excel', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def transactions_report_excel():
    client = get_client()
    args = _report_args()
    transactions = reports.transactions_report(client, **args)
    sheet = reports.transactions_sheet(transactions, directory.user_map(client))
    response = make_response(reports.to_excel(sheet, "Transactions"))
    filename = f"transactions_{args['start_date']}_{args['end_date']}.xlsx"
    response.headers["Content-Disposition"] = f"attachment; filename={filename}"
    response.headers["Content-Type"] = reports.EXCEL_MIMETYPE
    return response


@admin_bp.route('/statistics', methods=['GET'])
@login_required
@role_required('admin')
@json_errors
def statistics():
    return success(statistics=reports.statistics(get_client()))
