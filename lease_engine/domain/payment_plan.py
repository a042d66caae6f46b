"""Payment plan builder - validates and clamps landlord-entered lease terms"""

from datetime import date, datetime
from typing import Optional

from lease_engine.domain.exceptions import InvalidLeaseTerms
from lease_engine.domain.models import PaymentPlan, RawLeaseTerms, Terms, UpfrontTotals
from lease_engine.domain.money import clamp_to, non_negative, require_cents
from lease_engine.utils.date_utils import lease_end_date, parse_iso_date

# Move-in items in collection precedence. Last month comes before first: it is
# the obligation most often waived, so it is collected first.
PRIORITY_ORDER = ("last_month", "first_month", "key_fee", "security_deposit")


def _parse_start_date(raw: object) -> date:
    if isinstance(raw, date) and not isinstance(raw, datetime):
        return raw
    parsed = parse_iso_date(raw)
    if parsed is None:
        raise InvalidLeaseTerms("bad_start_date", f"Start date must be YYYY-MM-DD, got {raw!r}")
    return parsed


def _parse_term_months(raw: object) -> Optional[int]:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int) or raw <= 0:
        raise InvalidLeaseTerms("bad_term_months", f"Term must be a positive whole number of months, got {raw!r}")
    return raw


def build_payment_plan(terms: RawLeaseTerms) -> PaymentPlan:
    """
    Validate raw lease terms and derive the canonical payment plan.

    Validation (nothing is written on failure):
    - monthly rent > 0
    - start date is a real YYYY-MM-DD date
    - term absent or a positive integer
    - security deposit <= one month's rent

    Countersign thresholds are never rejected: each is capped at its maximum
    (upfront: required first + last + key fee, deposit: security). This is
    the only place clamping happens.

    Raises:
        InvalidLeaseTerms: with a machine-readable code
    """
    rent = require_cents(terms.monthly_rent_cents, "monthly_rent_cents", code="bad_monthly")
    if rent <= 0:
        raise InvalidLeaseTerms("bad_monthly", f"Monthly rent must be positive, got {rent}")

    start = _parse_start_date(terms.start_date)
    term = _parse_term_months(terms.term_months)

    security = non_negative(require_cents(terms.security_cents, "security_cents"))
    key_fee = non_negative(require_cents(terms.key_fee_cents, "key_fee_cents"))
    if security > rent:
        raise InvalidLeaseTerms("security_gt_monthly", f"Security deposit {security} exceeds monthly rent {rent}")

    require_first = bool(terms.require_first_before_move_in)
    require_last = bool(terms.require_last_before_move_in)

    totals = UpfrontTotals(
        first_cents=rent if require_first else 0,
        last_cents=rent if require_last else 0,
        key_cents=key_fee,
        security_cents=security,
    )
    upfront_max = totals.other_upfront_cents
    deposit_max = security

    upfront_threshold = clamp_to(
        require_cents(terms.countersign_upfront_threshold_cents, "countersign_upfront_threshold_cents"),
        upfront_max,
    )
    deposit_threshold = clamp_to(
        require_cents(terms.countersign_deposit_threshold_cents, "countersign_deposit_threshold_cents"),
        deposit_max,
    )

    amounts = {
        "last_month": totals.last_cents,
        "first_month": totals.first_cents,
        "key_fee": totals.key_cents,
        "security_deposit": totals.security_cents,
    }
    priority = tuple(code for code in PRIORITY_ORDER if amounts[code] > 0)

    return PaymentPlan(
        monthly_rent_cents=rent,
        term_months=term,
        start_date=start,
        end_date=lease_end_date(start, term),
        security_cents=security,
        key_fee_cents=key_fee,
        require_first_before_move_in=require_first,
        require_last_before_move_in=require_last,
        countersign_upfront_threshold_cents=upfront_threshold,
        countersign_deposit_threshold_cents=deposit_threshold,
        upfront_max_cents=upfront_max,
        deposit_max_cents=deposit_max,
        upfront_totals=totals,
        priority=priority,
    )


def terms_from_plan(plan: PaymentPlan, address: str) -> Terms:
    """Terms snapshot recorded with the set_terms transition"""
    return Terms(
        address=(address or "").strip(),
        rent_cents=plan.monthly_rent_cents,
        start_date=plan.start_date,
        end_date=plan.end_date,
        deposit_cents=plan.security_cents,
    )


def terms_are_valid(terms: Optional[Terms]) -> bool:
    return bool(terms) and bool(terms.address) and terms.rent_cents > 0 and terms.start_date is not None
