import logging

from ..api_client import ApiError
from ..models import Rating, User
from .directory import fan_out

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def summarize(ratings, viewer_id=None, empty_average=0):
    """Average, count and the viewer's own rating for a list of rating dicts."""
    items = [r if isinstance(r, Rating) else Rating.from_dict(r) for r in ratings or []]
    average = sum(r.rating for r in items) / len(items) if items else empty_average
    mine = None
    if viewer_id is not None:
        for r in items:
            if r.rater_id == str(viewer_id):
                mine = r.to_dict()
                break
    return {
        "average_rating": average,
        "ratings_count": len(items),
        "my_rating": mine,
        "ratings": [r.to_dict() for r in items],
    }


def ratings_for(client, user_id):
    """Ratings received by ``user_id``. Failures are logged and read as no ratings."""
    if not user_id:
        return []
    try:
        return client.user_ratings(user_id)
    except ApiError as e:
        logger.warning("Error fetching ratings for user %s: %s", user_id, e)
        return []


def rate_user(client, rater_id, ratee_id, rating, comment=""):
    """Post a rating and return the ratee's refreshed summary."""
    try:
        rating = int(rating)
    except (TypeError, ValueError):
        raise ValueError("Please provide a rating")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValueError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    if not rater_id or not ratee_id:
        raise ValueError("Both rater and ratee are required")
    if str(rater_id) == str(ratee_id):
        raise ValueError("You cannot rate yourself")

    client.rate({
        "raterId": rater_id,
        "rateeId": ratee_id,
        "rating": rating,
        "comment": comment or "",
    })
    return summarize(client.user_ratings(ratee_id), viewer_id=rater_id)


def rateable_users(client, viewer_id, viewer_type, user_type=None, search=None, max_workers=8):
    """Every user the viewer may rate, each with a ratings summary.

    Admins are hidden from non-admin viewers. ``search`` matches name or email.
    """
    users = [User.from_dict(u) for u in client.list_users()]
    visible = []
    for u in users:
        if u.id == str(viewer_id):
            continue
        if viewer_type != "admin" and u.user_type == "admin":
            continue
        if user_type and user_type != "all" and u.user_type != user_type:
            continue
        if search:
            needle = search.strip().lower()
            if needle not in u.display_name.lower() and needle not in u.email.lower():
                continue
        visible.append(u)

    def _with_summary(u):
        row = u.to_dict()
        summary = summarize(ratings_for(client, u.id), viewer_id=viewer_id)
        summary.pop("ratings")
        row.update(summary)
        return row

    return fan_out(_with_summary, visible, max_workers)
