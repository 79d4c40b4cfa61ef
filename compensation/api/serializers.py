"""
JSON serialization of API responses.

Money is serialized as a string to keep every decimal place; datetimes
as ISO 8601.
"""

import json
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from functools import partial
from typing import Any

from compensation.models.base import Base


def _default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Base):
        return model_to_dict(value)
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, set):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


dumps = partial(json.dumps, default=_default)


def model_to_dict(model: Base) -> dict[str, Any]:
    """Column values of an ORM instance."""
    return {column.key: getattr(model, column.key) for column in model.__table__.columns}
