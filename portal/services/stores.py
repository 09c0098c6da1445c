import logging
import random
import string

from ..models import Profile, Store

logger = logging.getLogger(__name__)

_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_store_code():
    return "STR-" + "".join(random.choice(_CODE_ALPHABET) for _ in range(8))


def merchant_for_user(client, user_id):
    """Merchant profile owned by ``user_id``; raises LookupError when there is none."""
    for row in client.list_profiles("merchant"):
        merchant = Profile.from_dict(row, "merchant")
        if merchant.user_id and merchant.user_id == str(user_id) and merchant.id:
            return merchant
    raise LookupError("No merchant account found for this user")


def stores_for_merchant(client, merchant_id):
    stores = [Store.from_dict(s) for s in client.list_stores()]
    return [s for s in stores if s.merchant == str(merchant_id)]


def add_store(client, user_id, location):
    location = (location or "").strip()
    if not location:
        raise ValueError("Store location is required")
    merchant = merchant_for_user(client, user_id)
    payload = {
        "merchant": merchant.id,
        "store_code": generate_store_code(),
        "location": location,
    }
    created = client.create_store(payload)
    logger.info("Store %s added for merchant %s", payload["store_code"], merchant.id)
    if isinstance(created, dict) and created.get("store_code"):
        return created
    return payload
