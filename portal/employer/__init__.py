from flask import Blueprint

employer_bp = Blueprint('employer', __name__, url_prefix='/employer/api')

from . import api  # noqa: E402,F401
