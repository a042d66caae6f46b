"""Charge allocator - applies payment history to charges under priority and bucket rules"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from lease_engine.config import settings
from lease_engine.domain.identifiers import ApplicationId
from lease_engine.domain.models import (
    AllocationResult,
    Bucket,
    Charge,
    ChargeAllocation,
    DepositSpillover,
    Obligation,
    ObligationGroup,
    Overage,
    Payment,
    PaymentKind,
    PaymentPlan,
    PaymentStatus,
)
from lease_engine.domain.money import saturating_sub
from lease_engine.utils.date_utils import add_months, month_key

ALLOCATABLE_KINDS = {PaymentKind.UPFRONT: Bucket.UPFRONT, PaymentKind.DEPOSIT: Bucket.DEPOSIT}
ALLOCATABLE_STATUSES = {PaymentStatus.SUCCEEDED, PaymentStatus.PROCESSING}

# Used when a stored plan carries no priority list
FALLBACK_PRIORITY = ("key_fee", "first_month", "last_month", "security_deposit")
UNLISTED_PRIORITY = 999


def charge_key(application_id: ApplicationId, bucket: Bucket, code: str) -> str:
    return f"{application_id}:{bucket.value}:{code}"


def bucket_for_group(group: ObligationGroup) -> Bucket:
    """Rent shares the upfront pool with move-in fees; only the deposit is separate"""
    return Bucket.DEPOSIT if group == ObligationGroup.DEPOSIT else Bucket.UPFRONT


def obligation_charge_key(obligation: Obligation) -> str:
    return charge_key(obligation.application_id, bucket_for_group(obligation.group), obligation.key)


def build_charges(
    application_id: ApplicationId,
    plan: PaymentPlan,
    include_rent: bool = True,
    skip_prepaid_months: bool = False,
    rent_priority_base: Optional[int] = None,
) -> List[Charge]:
    """
    Derive charges on the fly from a payment plan (no persisted obligations).

    Move-in items take their index in plan.priority; rent months follow at
    rent_priority_base + i; the security deposit is the only deposit charge.
    With skip_prepaid_months, the rent months already covered by a required
    first/last month are left out.
    """
    base = settings.rent_charge_priority_base if rent_priority_base is None else rent_priority_base
    order = plan.priority or FALLBACK_PRIORITY

    def prio(code: str) -> int:
        return order.index(code) if code in order else UNLISTED_PRIORITY

    charges: List[Charge] = []

    def push(bucket: Bucket, code: str, amount: int, priority_index: int) -> None:
        if amount <= 0:
            return
        charges.append(
            Charge(
                charge_key=charge_key(application_id, bucket, code),
                bucket=bucket,
                code=code,
                amount_cents=amount,
                priority_index=priority_index,
            )
        )

    totals = plan.upfront_totals
    push(Bucket.UPFRONT, "key_fee", totals.key_cents, prio("key_fee"))
    push(Bucket.UPFRONT, "first_month", totals.first_cents, prio("first_month"))
    push(Bucket.UPFRONT, "last_month", totals.last_cents, prio("last_month"))

    if include_rent:
        term = plan.term_months or 0
        for i in range(term):
            if skip_prepaid_months and plan.require_first_before_move_in and i == 0:
                continue
            if skip_prepaid_months and plan.require_last_before_move_in and i == term - 1:
                continue
            due = add_months(plan.start_date, i)
            push(Bucket.UPFRONT, f"rent:{month_key(due, sep='-')}", plan.monthly_rent_cents, base + i)

    push(Bucket.DEPOSIT, "security_deposit", plan.security_cents, prio("security_deposit"))
    return charges


def charges_from_obligations(obligations: Iterable[Obligation]) -> List[Charge]:
    """One charge per persisted obligation, keyed and prioritized as stored"""
    return [
        Charge(
            charge_key=obligation_charge_key(o),
            bucket=bucket_for_group(o.group),
            code=o.key,
            amount_cents=o.amount_cents,
            priority_index=o.priority,
        )
        for o in obligations
    ]


def _as_utc(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def _payment_order(payment: Payment) -> Tuple:
    # Oldest money first; the rest only breaks created_at ties so the result
    # does not depend on input order.
    return (
        _as_utc(payment.created_at),
        str(payment.payment_id or ""),
        payment.provider_ref or "",
        payment.kind.value,
        payment.status.value,
        payment.amount_cents,
    )


def allocate(
    charges: Sequence[Charge],
    payments: Iterable[Payment],
    spill_over: Optional[Mapping[Bucket, Bucket]] = None,
) -> AllocationResult:
    """
    Apply payments to charges, oldest payment first, highest priority charge first.

    Algorithm:
    1. Charges sorted by (priority_index, code)
    2. Payments sorted by created_at (first-in-first-applied, not best-fit)
    3. Each payment fills the open amount (amount - posted - pending) of the
       charges in its own bucket; succeeded money is posted, processing money
       is pending
    4. Whatever is left is an Overage. It only moves to another bucket when
       spill_over maps the payment's bucket to one.

    Only upfront/deposit payments (operating is already normalized to upfront)
    with status succeeded/processing take part. The result is always
    recomputed from the inputs, so out-of-order status updates replay to the
    same allocation.

    Guarantees:
    - posted + pending <= amount for every charge
    - same inputs (in any order) -> same result
    """
    ordered_charges = sorted(charges, key=lambda c: (c.priority_index, c.code))
    posted: Dict[str, int] = {}
    pending: Dict[str, int] = {}
    for c in ordered_charges:
        if c.charge_key in posted:
            raise ValueError(f"Duplicate charge key: {c.charge_key}")
        posted[c.charge_key] = 0
        pending[c.charge_key] = 0

    spill = dict(spill_over or {})
    eligible = [p for p in payments if p.kind in ALLOCATABLE_KINDS and p.status in ALLOCATABLE_STATUSES]
    overages: List[Overage] = []

    for payment in sorted(eligible, key=_payment_order):
        target = posted if payment.status == PaymentStatus.SUCCEEDED else pending
        home = ALLOCATABLE_KINDS[payment.kind]
        remaining = payment.amount_cents

        bucket: Optional[Bucket] = home
        visited = set()
        while bucket is not None and bucket not in visited and remaining > 0:
            visited.add(bucket)
            for c in ordered_charges:
                if remaining == 0:
                    break
                if c.bucket != bucket:
                    continue
                open_cents = saturating_sub(c.amount_cents, posted[c.charge_key] + pending[c.charge_key])
                if open_cents == 0:
                    continue
                take = min(open_cents, remaining)
                target[c.charge_key] += take
                remaining -= take
            bucket = spill.get(bucket)

        if remaining > 0:
            overages.append(Overage(payment_id=payment.payment_id, bucket=home, remaining_cents=remaining))

    return AllocationResult(
        charges=list(charges),
        by_charge={
            c.charge_key: ChargeAllocation(c.charge_key, posted[c.charge_key], pending[c.charge_key])
            for c in charges
        },
        overages=overages,
    )


def deposit_spillover(application_id: ApplicationId, plan: PaymentPlan, payments: Iterable[Payment]) -> DepositSpillover:
    """
    Holding money split between "other up-front fees" and the security deposit.

    Succeeded holding money is applied to first + last + key fee first; only
    the excess reaches the deposit. Computed by the general allocator (holding
    money treated as upfront, spilling into deposit) so both views agree on
    the same payment history. Processing holding money is reported as pending
    and never moves the split.
    """
    holding = [replace(p, kind=PaymentKind.UPFRONT) for p in payments if p.kind == PaymentKind.HOLDING]
    settled = [p for p in holding if p.status == PaymentStatus.SUCCEEDED]
    charges = build_charges(application_id, plan, include_rent=False)
    result = allocate(charges, settled, spill_over={Bucket.UPFRONT: Bucket.DEPOSIT})

    posted = result.posted_by_bucket()
    expected_other = plan.upfront_totals.other_upfront_cents
    expected_deposit = plan.upfront_totals.security_cents
    return DepositSpillover(
        expected_other_cents=expected_other,
        expected_deposit_cents=expected_deposit,
        paid_cents=sum(p.amount_cents for p in settled),
        pending_cents=sum(p.amount_cents for p in holding if p.status == PaymentStatus.PROCESSING),
        remaining_other_cents=saturating_sub(expected_other, posted[Bucket.UPFRONT]),
        spill_to_deposit_cents=posted[Bucket.DEPOSIT],
        remaining_deposit_cents=saturating_sub(expected_deposit, posted[Bucket.DEPOSIT]),
        unassigned_cents=result.unassigned_cents,
    )


def gate_totals(obligations: Iterable[Obligation]) -> Dict[Bucket, int]:
    """Posted cents per bucket over the obligations that gate countersign"""
    totals = {Bucket.UPFRONT: 0, Bucket.DEPOSIT: 0}
    for o in obligations:
        if o.pre_sign_gate:
            totals[bucket_for_group(o.group)] += o.paid_cents
    return totals
