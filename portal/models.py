# Transient copies of records owned by the remote Ezitt API.
# Every model is built from the API's JSON dict and can be turned back into one.

ROLES = ("client", "merchant", "employer", "underwriter")
USER_TYPES = ROLES + ("admin",)
REQUEST_STATUSES = ("pending", "approved", "declined")


def _str_id(value):
    if value is None or value == "":
        return None
    return str(value)


def _number(value, default=0):
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


class User:
    def __init__(self, id, first_name="", last_name="", email="", user_type="", phone=None, organisation_name=None):
        self.id = id
        self.first_name = first_name or ""
        self.last_name = last_name or ""
        self.email = email or ""
        self.user_type = user_type or ""
        self.phone = phone
        self.organisation_name = organisation_name

    @classmethod
    def from_dict(cls, data):
        # /user/<id> sometimes wraps the record as {"user": {...}}
        data = data.get("user") or data if isinstance(data, dict) else {}
        return cls(
            id=_str_id(data.get("id")),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            email=data.get("email"),
            user_type=(data.get("user_type") or "").lower(),
            phone=data.get("phone"),
            organisation_name=data.get("organisation_name"),
        )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def display_name(self):
        return self.full_name or self.organisation_name or self.email or "N/A"

    def to_dict(self):
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "name": self.display_name,
            "email": self.email,
            "user_type": self.user_type,
            "phone": self.phone,
            "organisation_name": self.organisation_name,
        }


class Profile:
    """Role record (client, merchant, employer or underwriter) keyed by ``user_id``.

    Role-specific columns (merchant_code, organisation_name, employer_id,
    merchant_status ...) are kept untouched in ``attributes``.
    """

    CORE_FIELDS = ("id", "user_id", "float", "status")

    def __init__(self, id, user_id, role, float=0, status=None, attributes=None):
        self.id = id
        self.user_id = user_id
        self.role = role
        self.float = float
        self.status = status
        self.attributes = attributes or {}

    @classmethod
    def from_dict(cls, data, role):
        data = data or {}
        return cls(
            id=_str_id(data.get("id")),
            user_id=_str_id(data.get("user_id")),
            role=role,
            float=_number(data.get("float")),
            status=data.get("status"),
            attributes={k: v for k, v in data.items() if k not in cls.CORE_FIELDS},
        )

    def get(self, key, default=None):
        value = self.attributes.get(key)
        return default if value is None else value

    def to_dict(self):
        out = dict(self.attributes)
        out.update({
            "id": self.id,
            "user_id": self.user_id,
            "role": self.role,
            "float": self.float,
            "status": self.status,
        })
        return out


class Request:
    def __init__(self, id, request_type, requester_type, requester_id, recipient_type, recipient_id,
                 status="pending", user_id=None, created_at=None, updated_at=None):
        self.id = id
        self.request_type = request_type
        self.requester_type = requester_type
        self.requester_id = requester_id
        self.recipient_type = recipient_type
        self.recipient_id = recipient_id
        self.status = status
        self.user_id = user_id
        self.created_at = created_at
        self.updated_at = updated_at

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            id=_str_id(data.get("id")),
            request_type=(data.get("request_type") or "").strip().lower(),
            requester_type=(data.get("requester_type") or "").strip().lower(),
            requester_id=_str_id(data.get("requester_id")),
            recipient_type=(data.get("recipient_type") or "").strip().lower(),
            recipient_id=_str_id(data.get("recipient_id")),
            status=(data.get("status") or "").strip().lower(),
            user_id=_str_id(data.get("user_id")),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "request_type": self.request_type,
            "requester_type": self.requester_type,
            "requester_id": self.requester_id,
            "recipient_type": self.recipient_type,
            "recipient_id": self.recipient_id,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class Transaction:
    def __init__(self, id, paid_by, paid_to, amount=0, time_stamp=None, store=None,
                 paid_by_type=None, paid_to_type=None, transaction_type=None):
        self.id = id
        self.paid_by = paid_by
        self.paid_to = paid_to
        self.amount = amount
        self.time_stamp = time_stamp
        self.store = store
        self.paid_by_type = paid_by_type
        self.paid_to_type = paid_to_type
        self.transaction_type = transaction_type

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            id=_str_id(data.get("id")),
            paid_by=_str_id(data.get("paid_by")),
            paid_to=_str_id(data.get("paid_to")),
            amount=_number(data.get("amount")),
            time_stamp=data.get("time_stamp"),
            store=data.get("store"),
            paid_by_type=data.get("paid_by_type"),
            paid_to_type=data.get("paid_to_type"),
            transaction_type=data.get("transaction_type"),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "paid_by": self.paid_by,
            "paid_to": self.paid_to,
            "paid_by_type": self.paid_by_type,
            "paid_to_type": self.paid_to_type,
            "store": self.store,
            "amount": self.amount,
            "time_stamp": self.time_stamp,
            "transaction_type": self.transaction_type,
        }


class Store:
    def __init__(self, id, merchant, store_code, location):
        self.id = id
        self.merchant = merchant
        self.store_code = store_code
        self.location = location

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            id=_str_id(data.get("id")),
            merchant=_str_id(data.get("merchant")),
            store_code=data.get("store_code"),
            location=data.get("location"),
        )

    def to_dict(self):
        return {"id": self.id, "merchant": self.merchant, "store_code": self.store_code, "location": self.location}


class Rating:
    def __init__(self, rater_id, rating, comment="", created_at=None, id=None, rater_name=None):
        self.id = id
        self.rater_id = rater_id
        self.rating = rating
        self.comment = comment or ""
        self.created_at = created_at
        self.rater_name = rater_name

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            id=_str_id(data.get("id")),
            rater_id=_str_id(data.get("rater_id")),
            rating=_number(data.get("rating")),
            comment=data.get("comment"),
            created_at=data.get("created_at"),
            rater_name=data.get("rater_name"),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "rater_id": self.rater_id,
            "rating": self.rating,
            "comment": self.comment,
            "created_at": self.created_at,
            "rater_name": self.rater_name,
        }
