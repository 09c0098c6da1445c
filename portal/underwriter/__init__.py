from flask import Blueprint

underwriter_bp = Blueprint('underwriter', __name__, url_prefix='/underwriter/api')

from . import api  # noqa: E402,F401
