from functools import wraps

from flask import current_app, jsonify, session

from .api_client import ApiError, get_client
from .auth.decorators import login_required, role_required
from .models import ROLES, Profile, User
from .relationships import LinkRequestBlocked, Party, connection_counts, default_request_type, is_linked, request_link
from .services import directory
from .services.ratings import ratings_for, summarize


def success(code=200, **payload):
    body = {"status": "success"}
    body.update(payload)
    return jsonify(body), code


def error(message, code):
    return jsonify({"status": "error", "message": message}), code


def json_errors(view_func):
    """Turn the exceptions raised by services into the portal's JSON envelope."""
    @wraps(view_func)
    def wrapper(*args, **kwargs):
        try:
            return view_func(*args, **kwargs)
        except LinkRequestBlocked as e:
            return jsonify({"status": "info", "message": e.message}), 200
        except ApiError as e:
            if e.status_code == 404:
                return error(e.message or "Not found", 404)
            return error(e.message, 502)
        except (ValueError, LookupError) as e:
            return error(str(e), 400)
        except Exception as e:
            current_app.logger.exception(f"Unhandled error in {view_func.__name__}: {e}")
            return error("An unexpected error occurred", 500)
    return wrapper


def current_party():
    return Party(session.get("role"), session.get("user_id"))


def max_workers():
    return current_app.config.get("EZITT_MAX_WORKERS", directory.DEFAULT_MAX_WORKERS)


def load_profile(client, role, profile_id):
    data = client.get_profile(role, profile_id)
    if not data:
        raise ApiError(f"{role.capitalize()} not found", 404)
    return Profile.from_dict(data, role)


def party_detail(client, role, profile_id, viewer=None):
    """Card data for one client, merchant, employer or underwriter.

    Carries the profile, its user's contact fields, approved connection counts,
    ratings and, for role viewers, whether the viewer is linked with it.
    """
    profile = load_profile(client, role, profile_id)
    requests = client.list_requests()

    detail = profile.to_dict()
    detail.update({"name": "N/A", "email": "N/A", "phone": "N/A", "organisation_name": "N/A"})
    if profile.user_id:
        try:
            user = User.from_dict(client.get_user(profile.user_id))
            detail.update({
                "name": user.full_name or "N/A",
                "email": user.email or "N/A",
                "phone": user.phone or "N/A",
                "organisation_name": user.organisation_name or "N/A",
            })
        except ApiError as e:
            current_app.logger.warning(f"User {profile.user_id} for {role} {profile_id} not loaded: {e}")

    employer_id = profile.get("employer_id")
    detail["employer_name"] = "N/A"
    if employer_id:
        try:
            employer = client.get_profile("employer", employer_id) or {}
            detail["employer_name"] = employer.get("name") or f"Employer ID: {employer_id}"
        except ApiError as e:
            current_app.logger.warning(f"Employer {employer_id} not loaded: {e}")

    detail["connection_counts"] = connection_counts(requests, profile.user_id)

    summary = summarize(ratings_for(client, profile.user_id), empty_average=None)
    detail["average_rating"] = summary["average_rating"]
    detail["ratings"] = summary["ratings"]

    if viewer is not None and viewer.role in ROLES and profile.user_id:
        other = Party(role, profile.user_id)
        detail["is_linked"] = is_linked(requests, default_request_type(viewer, other), viewer, other)
    return detail


def link_with_profile(role, profile_id, request_type=None):
    """Send a link request from the logged-in party to the owner of a profile."""
    client = get_client()
    requester = current_party()
    profile = load_profile(client, role, profile_id)
    if not profile.user_id:
        raise ValueError(f"{role.capitalize()} has no associated user ID")
    recipient = Party(role, profile.user_id)
    created = request_link(client, requester, recipient, request_type)
    return success(201, message="Link request sent successfully!", request=created)


def directory_rows(role, viewer=None, **filters):
    """Every ``role`` profile joined with its user, flagged with ``is_linked`` for role viewers."""
    client = get_client()
    profiles = directory.list_profiles(client, role, **filters)
    users = directory.user_map(client)
    rows = directory.enrich_profiles(client, profiles, users=users)
    if viewer is not None and viewer.role in ROLES:
        request_type = f"{viewer.role}-{role}"
        directory.with_link_flags(rows, client.list_requests(), request_type, viewer, role)
    return rows


def linked_rows(other_role):
    return directory.linked_profiles(get_client(), current_party(), other_role, max_workers())


def register_party_routes(blueprint, viewer_role, other_role, segment=None, request_type=None):
    """Register the list / linked / detail / link endpoints a portal needs for one counterpart role.

    ``segment`` is the URL segment (defaults to the plural role, e.g. "employers");
    ``request_type`` overrides the "<viewer>-<other>" link type.
    """
    segment = segment or f"{other_role}s"
    request_type = request_type or f"{viewer_role}-{other_role}"

    def guarded(view):
        return login_required(role_required(viewer_role)(json_errors(view)))

    def list_all():
        return success(**{segment: directory_rows(other_role, viewer=current_party())})

    def list_linked():
        return success(**{segment: linked_rows(other_role)})

    def detail(profile_id):
        return success(**{other_role: party_detail(get_client(), other_role, profile_id, viewer=current_party())})

    def link(profile_id):
        return link_with_profile(other_role, profile_id, request_type)

    blueprint.add_url_rule(f"/{segment}", f"{segment}_list", guarded(list_all), methods=["GET"])
    blueprint.add_url_rule(f"/{segment}/linked", f"{segment}_linked", guarded(list_linked), methods=["GET"])
    blueprint.add_url_rule(f"/{segment}/<profile_id>", f"{segment}_detail", guarded(detail), methods=["GET"])
    blueprint.add_url_rule(f"/{segment}/<profile_id>/link", f"{segment}_link", guarded(link), methods=["POST"])
