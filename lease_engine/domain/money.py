"""Integer minor-unit (cents) arithmetic that never goes below zero"""

from lease_engine.domain.exceptions import InvalidLeaseTerms


def non_negative(cents: int) -> int:
    """Floor an amount at zero"""
    return max(0, cents)


def saturating_sub(minuend: int, subtrahend: int) -> int:
    """a - b, saturating at zero"""
    return max(0, minuend - subtrahend)


def clamp_to(cents: int, maximum: int) -> int:
    """Cap an amount at a (non-negative) maximum, never rejecting it"""
    return min(non_negative(cents), non_negative(maximum))


def require_cents(value: object, field: str, code: str = "bad_amount") -> int:
    """
    Accept only whole minor units.

    bool is rejected even though it subclasses int: ``True`` cents is always a
    caller bug.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidLeaseTerms(code, f"{field} must be an integer amount of cents, got {value!r}")
    return value
