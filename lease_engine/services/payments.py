"""Payment recording, allocation recompute and the read-only money views"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from lease_engine.domain.allocation import (
    allocate,
    build_charges,
    charges_from_obligations,
    deposit_spillover,
    gate_totals,
)
from lease_engine.domain.clock import Clock, SystemClock
from lease_engine.domain.exceptions import PlanNotSet
from lease_engine.domain.identifiers import ApplicationId
from lease_engine.domain.lifecycle import (
    Action,
    ApplicationStatus,
    GuardFacts,
    Role,
    Transition,
    countersign_minimum_satisfied,
)
from lease_engine.domain.models import (
    AllocationResult,
    Bucket,
    DepositSpillover,
    Obligation,
    Payment,
    TimelineEntry,
)
from lease_engine.domain.obligations import materialize_paid
from lease_engine.domain.payment_plan import terms_from_plan
from lease_engine.infrastructure.database.repositories import (
    ApplicationRepository,
    ObligationRepository,
    PaymentRepository,
)
from lease_engine.infrastructure.observability.logging import log_allocation
from lease_engine.infrastructure.observability.metrics import record_overages
from lease_engine.services.lifecycle import LifecycleService


@dataclass
class RecomputeResult:
    allocation: AllocationResult
    obligations: List[Obligation] = field(default_factory=list)
    gate_totals: Dict[Bucket, int] = field(default_factory=dict)
    transition: Optional[Transition] = None


def record_payment(
    db: Session,
    application_id: ApplicationId,
    payment: Payment,
    clock: Optional[Clock] = None,
    request_id: Optional[str] = None,
) -> RecomputeResult:
    """Store a provider-reported payment and recompute everything derived from payments"""
    clock = clock or SystemClock()
    ApplicationRepository(db).get(application_id)
    PaymentRepository(db).record(application_id, payment, clock.now())
    return recompute(db, application_id, clock, request_id=request_id)


def recompute(
    db: Session,
    application_id: ApplicationId,
    clock: Optional[Clock] = None,
    request_id: Optional[str] = None,
) -> RecomputeResult:
    """
    Re-derive paid amounts from the full payment history.

    1. Allocate every payment against the current obligations
    2. Overwrite each obligation's paid_cents with its posted allocation
    3. If the application waits in min_due and the pre-sign obligations now
       meet every countersign minimum, move it to min_paid

    Safe to run any number of times: nothing is accumulated.
    """
    clock = clock or SystemClock()
    applications = ApplicationRepository(db)
    obligation_repo = ObligationRepository(db)

    record = applications.get(application_id)
    obligations = obligation_repo.list_for_application(application_id)
    payments = PaymentRepository(db).list_for_application(application_id)

    allocation = allocate(charges_from_obligations(obligations), payments)
    materialized = materialize_paid(obligations, allocation)
    obligation_repo.save_paid(materialized, clock.now())

    posted = allocation.posted_by_bucket()
    pending = allocation.pending_by_bucket()
    record_overages(allocation.overages)
    log_allocation(
        str(application_id),
        posted_cents=sum(posted.values()),
        pending_cents=sum(pending.values()),
        overage_cents=allocation.unassigned_cents,
        request_id=request_id,
    )

    totals = gate_totals(materialized)
    result = RecomputeResult(allocation=allocation, obligations=materialized, gate_totals=totals)

    rules = tuple(record.min_rules())
    if record.status == ApplicationStatus.MIN_DUE.value and countersign_minimum_satisfied(rules, totals):
        lifecycle = LifecycleService(db, clock)
        result.transition = lifecycle.apply(
            application_id,
            Action.PAYMENT_UPDATED,
            GuardFacts(role=Role.SYSTEM, min_rules=rules, payment_totals=totals),
            "system",
            values={"countersign_allowed": True},
        )
        if not result.transition.no_op:
            applications.append_timeline(
                application_id,
                [
                    TimelineEntry(
                        at=clock.now(),
                        by="system",
                        event="payments.gates_satisfied",
                        meta={
                            "upfrontPaidCents": totals[Bucket.UPFRONT],
                            "depositPaidCents": totals[Bucket.DEPOSIT],
                        },
                    )
                ],
            )

    return result


@dataclass
class AllocationSummary:
    allocation: AllocationResult
    posted_by_bucket: Dict[Bucket, int]
    pending_by_bucket: Dict[Bucket, int]


def allocation_summary(
    db: Session,
    application_id: ApplicationId,
    include_rent: bool = True,
    skip_prepaid_months: bool = False,
) -> AllocationSummary:
    """Allocation over charges derived from the stored plan; writes nothing"""
    record = ApplicationRepository(db).get(application_id)
    if record.payment_plan is None:
        raise PlanNotSet(application_id)
    charges = build_charges(
        application_id,
        record.payment_plan,
        include_rent=include_rent,
        skip_prepaid_months=skip_prepaid_months,
    )
    result = allocate(charges, PaymentRepository(db).list_for_application(application_id))
    return AllocationSummary(
        allocation=result,
        posted_by_bucket=result.posted_by_bucket(),
        pending_by_bucket=result.pending_by_bucket(),
    )


def payment_tasks(db: Session, application_id: ApplicationId) -> DepositSpillover:
    """How holding money splits between other up-front fees and the deposit"""
    record = ApplicationRepository(db).get(application_id)
    if record.payment_plan is None:
        raise PlanNotSet(application_id)
    payments = PaymentRepository(db).list_for_application(application_id)
    return deposit_spillover(application_id, record.payment_plan, payments)


def guard_facts_for(
    db: Session,
    application_id: ApplicationId,
    role: Role,
    clock: Optional[Clock] = None,
    members_ack: bool = False,
    signatures_count: int = 0,
) -> GuardFacts:
    """Guard facts for an externally triggered event, derived from what is stored"""
    clock = clock or SystemClock()
    record = ApplicationRepository(db).get(application_id)
    terms = terms_from_plan(record.payment_plan, record.premises_address or "") if record.payment_plan else None
    obligations = ObligationRepository(db).list_for_application(application_id)
    return GuardFacts(
        role=role,
        members_ack=members_ack,
        terms=terms,
        min_rules=tuple(record.min_rules()),
        payment_totals=gate_totals(obligations),
        signatures_count=signatures_count,
        as_of=clock.today(),
    )
