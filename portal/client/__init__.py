from flask import Blueprint

client_bp = Blueprint('client', __name__, url_prefix='/client/api')

from . import api  # noqa: E402,F401
