from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

CENT = Decimal("0.01")


def money(v: Any) -> Decimal:
    if isinstance(v, Decimal):
        return v.quantize(CENT, rounding=ROUND_HALF_UP)
    return Decimal(str(v)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_float(v: Optional[Any]) -> Optional[float]:
    if v is None:
        return None
    return float(money(v))


def format_mxn(v: Any) -> str:
    # 1500 -> "1,500"; 99.5 -> "99.5"
    s = f"{money(v):,.2f}"
    return s.rstrip("0").rstrip(".") if "." in s else s
