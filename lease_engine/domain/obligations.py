"""Obligation generation: upfront items plus the monthly rent schedule"""

from dataclasses import replace
from typing import List, Optional

from lease_engine.config import settings
from lease_engine.domain.allocation import obligation_charge_key
from lease_engine.domain.identifiers import ApplicationId, LeaseId
from lease_engine.domain.models import (
    AllocationResult,
    Obligation,
    ObligationGroup,
    ObligationStatus,
    PaymentPlan,
    ScheduledPayment,
)
from lease_engine.utils.date_utils import add_months, month_key

# (key, label, group, priority band); lower priority runs first
UPFRONT_ITEMS = (
    ("last", "Last month", ObligationGroup.UPFRONT, 10),
    ("first", "First month", ObligationGroup.UPFRONT, 20),
    ("key_fee", "Key fee", ObligationGroup.FEE, 30),
    ("security", "Security deposit", ObligationGroup.DEPOSIT, 40),
)


def _upfront_amount(plan: PaymentPlan, key: str) -> int:
    totals = plan.upfront_totals
    return {
        "last": totals.last_cents,
        "first": totals.first_cents,
        "key_fee": totals.key_cents,
        "security": totals.security_cents,
    }[key]


def generate_obligations(
    plan: PaymentPlan,
    application_id: ApplicationId,
    lease_id: Optional[LeaseId] = None,
    rent_priority_base: Optional[int] = None,
) -> List[Obligation]:
    """
    Expand a canonical payment plan into trackable obligations.

    Requirements:
    - One obligation per non-zero move-in item (last, first, key_fee,
      security), due on the start date and gating countersign
    - Exactly term_months rent obligations, due on the same day of each month
      (clamped to month end, see add_months), never gating countersign
    - Rent priorities start at rent_priority_base so rent allocates after
      every move-in item

    The plan is assumed valid (build_payment_plan rejected everything else),
    so this never fails.

    Example:
        rent 200000, first required, key 10000, security 150000, term 2,
        start 2026-02-01 ->
        first, key_fee, security, rent:2026:02, rent:2026:03
    """
    base = settings.rent_obligation_priority_base if rent_priority_base is None else rent_priority_base
    obligations: List[Obligation] = []

    for key, label, group, priority in UPFRONT_ITEMS:
        amount = _upfront_amount(plan, key)
        if amount <= 0:
            continue
        obligations.append(
            Obligation(
                application_id=application_id,
                lease_id=lease_id,
                key=key,
                label=label,
                group=group,
                amount_cents=amount,
                due_on=plan.start_date,
                priority=priority,
                pre_sign_gate=True,
            )
        )

    for i in range(plan.term_months or 0):
        due_on = add_months(plan.start_date, i)
        obligations.append(
            Obligation(
                application_id=application_id,
                lease_id=lease_id,
                key=f"rent:{month_key(due_on)}",
                label=f"Rent {month_key(due_on, sep='-')}",
                group=ObligationGroup.RENT,
                amount_cents=plan.monthly_rent_cents,
                due_on=due_on,
                priority=base + i,
                pre_sign_gate=False,
            )
        )

    return obligations


def build_scheduled_payments(obligations: List[Obligation], currency: Optional[str] = None) -> List[ScheduledPayment]:
    """Calendar rows for every obligation that has a due date"""
    currency = currency or settings.currency
    return [
        ScheduledPayment(
            obligation_key=o.key,
            due_date=o.due_on,
            amount_cents=o.amount_cents,
            currency=currency,
            label=o.label,
            bucket="deposit" if o.group == ObligationGroup.DEPOSIT else "standard",
        )
        for o in obligations
        if o.due_on is not None
    ]


def obligation_status(amount_cents: int, paid_cents: int) -> ObligationStatus:
    if paid_cents <= 0:
        return ObligationStatus.DUE
    if paid_cents >= amount_cents:
        return ObligationStatus.PAID
    return ObligationStatus.PARTIAL


def materialize_paid(obligations: List[Obligation], allocation: AllocationResult) -> List[Obligation]:
    """
    Copy obligations with paid_cents set from the posted allocation.

    paid_cents is replaced, never incremented: the allocation is always
    recomputed from the full payment history, so materializing it twice
    gives the same rows.
    """
    updated = []
    for o in obligations:
        paid = min(o.amount_cents, allocation.posted(obligation_charge_key(o)))
        updated.append(replace(o, paid_cents=paid, status=obligation_status(o.amount_cents, paid)))
    return updated
