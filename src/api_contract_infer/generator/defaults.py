"""Smart defaults: request fields guessed from the route's path and handler name."""

from typing import NamedTuple

from api_contract_infer.parser.base import RouteDescriptor


class SmartField(NamedTuple):
    name: str
    type: str
    description: str
    required: bool


LOGIN_FIELDS = [
    SmartField("email", "string", "User email address", True),
    SmartField("password", "string", "User password", True),
]

REGISTER_FIELDS = LOGIN_FIELDS + [SmartField("username", "string", "Username", False)]

PAYMENT_FIELDS = [
    SmartField("amount", "number", "Payment amount in cents", True),
    SmartField("currency", "string", "Currency code (e.g., usd)", False),
    SmartField("description", "string", "Payment description", False),
]

USER_FIELDS = [
    SmartField("email", "string", "User email", False),
    SmartField("username", "string", "Username", False),
    SmartField("firstName", "string", "First name", False),
    SmartField("lastName", "string", "Last name", False),
]

TRANSACTION_FIELDS = [
    SmartField("amount", "number", "Transaction amount", True),
    SmartField("description", "string", "Transaction description", False),
]

DATA_FIELD = SmartField("data", "object", "Request data", True)


def select_default_fields(route: RouteDescriptor) -> list[SmartField]:
    """Pick default request fields for a route; the first rule to name a field wins."""
    path = route.normalized_path.lower()
    handler = route.operation_id.lower()
    method = route.method

    fields: list[SmartField] = []
    if "login" in path or "login" in handler:
        fields += LOGIN_FIELDS
    if "register" in path or "register" in handler:
        fields += REGISTER_FIELDS
    if "payment" in path or "payment" in handler:
        fields += PAYMENT_FIELDS
    if "user" in path and method in ("POST", "PUT"):
        fields += USER_FIELDS
    if "transaction" in path:
        fields += TRANSACTION_FIELDS

    unique: dict[str, SmartField] = {}
    for field in fields:
        unique.setdefault(field.name, field)
    return list(unique.values())


def generic_default_fields(route: RouteDescriptor) -> list[SmartField]:
    """Fallback for a POST nothing else describes."""
    return [DATA_FIELD] if route.method == "POST" else []
