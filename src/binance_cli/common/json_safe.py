"""
Conversion of order records and exchange models into plain JSON values.

Decimals are written in fixed point so quantities such as ``1E-8`` read back
as ``"0.00000001"``; pydantic models use their exchange field names.
"""
from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import PurePath
from typing import Any

from pydantic import BaseModel

_PRIMITIVES = (str, int, float, bool)


def json_safe(value: Any) -> Any:
    if value is None or (isinstance(value, _PRIMITIVES) and not isinstance(value, Enum)):
        return value
    if isinstance(value, Enum):
        return json_safe(value.value)
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, BaseModel):
        return json_safe(value.model_dump(by_alias=True))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, PurePath):
        return value.as_posix()
    if isinstance(value, Mapping):
        return {str(key): json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [json_safe(item) for item in value]
    return str(value)
