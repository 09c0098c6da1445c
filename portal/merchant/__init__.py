from flask import Blueprint

merchant_bp = Blueprint('merchant', __name__, url_prefix='/merchant/api')

from . import api  # noqa: E402,F401
