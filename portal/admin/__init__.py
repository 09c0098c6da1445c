from flask import Blueprint

# Admin portal: JSON endpoints consumed by the admin dashboard
admin_bp = Blueprint('admin', __name__, url_prefix='/admin/api')

from . import api  # noqa: E402,F401
