"""Human-readable order references, invoice numbers and walk-in identities.

These are derived from the wall clock and are not coordinated across
terminals: two orders placed in the same millisecond window can collide.
The backend remains the owner of the real order id.
"""
import secrets
import string
from datetime import datetime
from typing import Optional, Tuple

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def _millis(moment: datetime) -> str:
    return str(int(moment.timestamp() * 1000))


def generate_order_reference(now: Optional[datetime] = None) -> str:
    """UR-YYMMDD-<last 6 digits of the millisecond timestamp>."""
    now = now or datetime.now()
    return f"UR-{now:%y%m%d}-{_millis(now)[-6:]}"


def generate_invoice_number(now: Optional[datetime] = None) -> str:
    """INV-YYYYMMDD-<last 4 digits of the millisecond timestamp>."""
    now = now or datetime.now()
    return f"INV-{now:%Y%m%d}-{_millis(now)[-4:]}"


def random_suffix(length: int = 6) -> str:
    return ''.join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def generate_walk_in_identity(
    email_domain: str,
    now: Optional[datetime] = None,
    suffix: Optional[str] = None
) -> Tuple[str, str]:
    """Unique (email, phone) pair for a synthesized walk-in customer."""
    timestamp = _millis(now or datetime.now())
    suffix = suffix or random_suffix()
    return f"walkin{timestamp}{suffix}@{email_domain}", f"WALKIN-{timestamp}-{suffix}"
