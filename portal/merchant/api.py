from flask import request, session

from . import merchant_bp
from ..api_client import get_client
from ..auth.decorators import login_required, role_required
from ..models import Request, Transaction
from ..relationships import connection_counts
from ..services import directory, stores
from ..views import error, json_errors, linked_rows, max_workers, register_party_routes, success

# 5% fee the platform keeps on every payment processed by a merchant
PROCESSING_FEE_RATE = 0.05

register_party_routes(merchant_bp, 'merchant', 'employer')
register_party_routes(merchant_bp, 'merchant', 'underwriter')


@merchant_bp.route('/overview', methods=['GET'])
@login_required
@role_required('merchant')
@json_errors
def overview():
    counts = connection_counts(get_client().list_requests(), session['user_id'])
    return success(connection_counts=counts)


@merchant_bp.route('/clients', methods=['GET'])
@login_required
@role_required('merchant')
@json_errors
def my_clients():
    return success(clients=linked_rows('client'))


@merchant_bp.route('/clients/all', methods=['GET'])
@login_required
@role_required('merchant')
@json_errors
def all_clients():
    """Every client on the platform, each joined with its own user record."""
    client = get_client()
    profiles = directory.list_profiles(client, 'client')
    return success(clients=directory.enrich_profiles(client, profiles, max_workers()))


@merchant_bp.route('/stores', methods=['GET'])
@login_required
@role_required('merchant')
@json_errors
def list_stores():
    client = get_client()
    merchant = stores.merchant_for_user(client, session['user_id'])
    rows = [s.to_dict() for s in stores.stores_for_merchant(client, merchant.id)]
    return success(stores=rows, merchant_id=merchant.id)


@merchant_bp.route('/stores', methods=['POST'])
@login_required
@role_required('merchant')
@json_errors
def add_store():
    """
    Add a store for the logged-in merchant.
    Body: { location }
    Returns: { status, store: { merchant, store_code, location } }
    """
    data = request.get_json(silent=True) or request.form
    store = stores.add_store(get_client(), session['user_id'], data.get('location'))
    return success(201, message='Store added successfully!', store=store)


@merchant_bp.route('/transactions', methods=['GET'])
@login_required
@role_required('merchant')
@json_errors
def latest_transactions():
    limit = request.args.get('limit', 6, type=int)
    client = get_client()
    rows = client.list_transactions(limit=limit, merchantId=session['user_id'])
    return success(transactions=directory.enrich_transactions(rows, directory.user_map(client)))


@merchant_bp.route('/processed-payments', methods=['GET'])
@login_required
@role_required('merchant')
@json_errors
def processed_payments():
    """Processing fees earned on the merchant's transactions."""
    client = get_client()
    merchant = stores.merchant_for_user(client, session['user_id'])
    mine = [
        Transaction.from_dict(t) for t in client.list_transactions()
        if str(t.get('merchant')) == merchant.id
    ]
    total = sum(t.amount for t in mine)
    return success(
        merchant_id=merchant.id,
        transactions=len(mine),
        total_amount=round(total, 2),
        total_fees=round(total * PROCESSING_FEE_RATE, 2),
    )


@merchant_bp.route('/requests/<request_id>', methods=['GET'])
@login_required
@role_required('merchant')
@json_errors
def request_detail(request_id):
    data = get_client().get_request(request_id)
    if not data:
        return error('Request not found', 404)
    return success(request=Request.from_dict(data).to_dict())
