from __future__ import annotations

from typing import Final

from .errors import UnknownCollectionError

TASKS: Final = "tasks"
INVENTORY: Final = "inventory"
EXPENSES: Final = "expenses"
PAYROLL: Final = "payroll"
ONBOARDING: Final = "onboarding"
COMPLAINTS: Final = "complaints"
USERS: Final = "users"
ATTENDANCE: Final = "attendance"
TEMPLATES: Final = "templates"
METADATA: Final = "metadata"
MEETINGS: Final = "meetings"
PASSWORD_REQUESTS: Final = "password_requests"
CHATS: Final = "chats"

# Order is the snapshot key order. Append new collections at the end and bump SCHEMA_VERSION.
COLLECTIONS: Final[tuple[str, ...]] = (
    TASKS,
    INVENTORY,
    EXPENSES,
    PAYROLL,
    ONBOARDING,
    COMPLAINTS,
    USERS,
    ATTENDANCE,
    TEMPLATES,
    METADATA,
    MEETINGS,
    PASSWORD_REQUESTS,
    CHATS,
)

SCHEMA_VERSION: Final = 6

# Every document is keyed on this field.
ID_FIELD: Final = "id"


def is_known(collection: str) -> bool:
    return collection in COLLECTIONS


def require_known(collection: str) -> str:
    if not is_known(collection):
        raise UnknownCollectionError(collection)
    return collection
