"""Coercion helpers used at the boundary where backend rows become schemas.

Rows coming back from the database (or from an imported backup) are
coerced exactly once, here, so the pricing engine and the store never see
strings where numbers are expected.
"""
import math
from typing import Any, Iterable, List, Optional


def to_number(value: Any, default: float = 0.0) -> float:
    """Best-effort float conversion; None, blanks, NaN and junk become `default`."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        try:
            num = float(value)
        except OverflowError:
            # ints beyond float range
            return default
    else:
        text = str(value).strip()
        if not text:
            return default
        # accept pt-BR decimal comma ("18,50")
        if "," in text and "." not in text:
            text = text.replace(",", ".")
        try:
            num = float(text)
        except (ValueError, OverflowError):
            return default
    if math.isnan(num) or math.isinf(num):
        return default
    return num


def to_optional_number(value: Any) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    num = to_number(value, default=math.nan)
    return None if math.isnan(num) else num


def is_number(value: Any) -> bool:
    """True when `value` converts cleanly (used by form validation)."""
    if value is None or isinstance(value, bool):
        return False
    return not math.isnan(to_number(value, default=math.nan))


def to_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value).strip()


def to_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, (str, bytes, dict)):
        return [value]
    if isinstance(value, Iterable):
        return list(value)
    return [value]


def field(obj: Any, name: str, default: Any = None) -> Any:
    """Read `name` from a mapping or an attribute-bearing object."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)
