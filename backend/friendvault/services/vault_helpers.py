"""
Vault helpers - amount parsing and asset classification shared by the services
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from friendvault.core.vaults.models import AMOUNT_SCALE
from friendvault.services.exceptions import ValidationError

# Largest amount the ledger can carry (int64 stroops)
MAX_AMOUNT = Decimal("922337203685.4775807")


def parse_amount(raw: Any) -> Decimal:
    """
    Parse a positive ledger amount.

    Accepts decimal strings, Decimals and ints. Raises ValidationError for
    anything non-numeric, non-positive, above MAX_AMOUNT, or finer than the
    ledger's precision.
    """
    if raw is None or isinstance(raw, bool):
        raise ValidationError("Amount is required")
    try:
        amount = Decimal(str(raw).strip())
    except InvalidOperation:
        raise ValidationError(f"Amount '{raw}' is not a number")

    if not amount.is_finite():
        raise ValidationError(f"Amount '{raw}' is not a number")
    if amount <= 0:
        raise ValidationError("Amount must be greater than 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"Amount must not exceed {MAX_AMOUNT}")
    # Trailing zeros beyond the scale are harmless ("1.00000000")
    if amount.normalize().as_tuple().exponent < -AMOUNT_SCALE:
        raise ValidationError(f"Amount supports at most {AMOUNT_SCALE} decimal places")
    return amount


def normalize_asset_ref(asset_ref: Optional[str], native_code: str) -> str:
    """Blank means the native asset; the native code is case-insensitive, contract ids are kept verbatim"""
    asset_ref = (asset_ref or "").strip()
    if not asset_ref or asset_ref.upper() == native_code.upper():
        return native_code.upper()
    return asset_ref


def is_native_asset(asset_ref: Optional[str], native_code: str) -> bool:
    return normalize_asset_ref(asset_ref, native_code) == native_code.upper()
