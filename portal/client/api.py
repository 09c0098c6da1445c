from flask import request, session

from . import client_bp
from ..api_client import get_client
from ..auth.decorators import login_required, role_required
from ..services import directory, ratings
from ..views import json_errors, linked_rows, max_workers, success


@client_bp.route('/merchants/linked', methods=['GET'])
@login_required
@role_required('client')
@json_errors
def linked_merchants():
    return success(merchants=linked_rows('merchant'))


@client_bp.route('/underwriters/linked', methods=['GET'])
@login_required
@role_required('client')
@json_errors
def linked_underwriters():
    return success(underwriters=linked_rows('underwriter'))


@client_bp.route('/employers/linked', methods=['GET'])
@login_required
@role_required('client')
@json_errors
def linked_employers():
    return success(employers=linked_rows('employer'))


@client_bp.route('/transactions', methods=['GET'])
@login_required
@role_required('client')
@json_errors
def my_transactions():
    client = get_client()
    transactions = directory.transactions_for_users(client, [session['user_id']], max_workers())
    return success(transactions=directory.enrich_transactions(transactions, directory.user_map(client)))


@client_bp.route('/ratings', methods=['GET'])
@login_required
@role_required('client')
@json_errors
def list_ratings():
    rows = ratings.rateable_users(
        get_client(), session['user_id'], session.get('role'),
        user_type=request.args.get('user_type'),
        search=request.args.get('search'),
        max_workers=max_workers(),
    )
    return success(users=rows)


@client_bp.route('/ratings', methods=['POST'])
@login_required
@role_required('client')
@json_errors
def rate():
    data = request.get_json(silent=True) or {}
    summary = ratings.rate_user(
        get_client(), session['user_id'], data.get('user_id'), data.get('rating'), data.get('comment'))
    return success(201, message='Rating submitted', **summary)
