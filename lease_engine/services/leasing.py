"""Set-plan workflow: payment plan, lease, obligations and the status moves around them"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from lease_engine.domain.clock import Clock, SystemClock
from lease_engine.domain.exceptions import ForbiddenAction
from lease_engine.domain.identifiers import ApplicationId, LeaseId
from lease_engine.domain.lifecycle import RULES, Action, ApplicationStatus, GuardFacts, Role, Transition
from lease_engine.domain.models import ApplicationRecord, Obligation, PaymentPlan, RawLeaseTerms, TimelineEntry
from lease_engine.domain.obligations import build_scheduled_payments, generate_obligations
from lease_engine.domain.payment_plan import build_payment_plan, terms_from_plan
from lease_engine.infrastructure.database.repositories import (
    ApplicationRepository,
    LeaseRepository,
    ObligationRepository,
)
from lease_engine.infrastructure.observability.logging import log_transition
from lease_engine.infrastructure.observability.metrics import record_obligations, record_transition
from lease_engine.services.lifecycle import LifecycleService

logger = logging.getLogger("lease_engine.leasing")

# Statuses in which the accepted plan is still the current one
PLAN_STAGES = frozenset(
    {
        ApplicationStatus.TERMS_SET.value,
        ApplicationStatus.MIN_DUE.value,
        ApplicationStatus.MIN_PAID.value,
        ApplicationStatus.COUNTERSIGNED.value,
    }
)


@dataclass
class PlanSetResult:
    plan: PaymentPlan
    plan_version: int
    status: str
    obligations: List[Obligation] = field(default_factory=list)
    lease_id: Optional[LeaseId] = None
    transitions: List[Transition] = field(default_factory=list)
    no_op: bool = False


def set_payment_plan(
    db: Session,
    application_id: ApplicationId,
    raw_terms: RawLeaseTerms,
    premises_address: str,
    role: Role,
    actor: str,
    clock: Optional[Clock] = None,
) -> PlanSetResult:
    """
    Accept landlord terms for an approved application.

    Flow:
    1. Build the canonical plan (invalid terms raise before anything is written)
    2. set_terms compare-and-swap, storing the plan, its countersign minimums
       and the next plan version in the same UPDATE
    3. Create the unsigned lease
    4. Insert the obligation set and its scheduled payments (once per plan version)
    5. system_min_ready: min_due when any countersign minimum is configured,
       otherwise straight to countersigned

    Everything is flushed on the caller's session; the caller commits or
    rolls back as one transaction. Repeating the call with the same terms and
    address once the plan is in place is a no-op that returns what is stored;
    different terms at that point are a StateConflict.
    """
    clock = clock or SystemClock()
    applications = ApplicationRepository(db)
    lifecycle = LifecycleService(db, clock)

    record = applications.get(application_id)
    plan = build_payment_plan(raw_terms)
    terms = terms_from_plan(plan, premises_address)
    plan_version = record.plan_version + 1
    min_rules = tuple(plan.min_rules())

    if _is_retry(record, plan, terms.address):
        if role not in RULES[Action.SET_TERMS].roles:
            raise ForbiddenAction(role=getattr(role, "value", str(role)), action=Action.SET_TERMS.value)
        record_transition(Action.SET_TERMS.value, "no_op")
        log_transition(str(application_id), Action.SET_TERMS.value, record.status, record.status, actor, no_op=True)
        return _stored_plan(db, record)

    set_terms = lifecycle.apply(
        application_id,
        Action.SET_TERMS,
        GuardFacts(role=role, terms=terms),
        actor,
        values={
            "payment_plan": plan.to_document(),
            "premises_address": terms.address,
            "plan_version": plan_version,
            "countersign_upfront_min_cents": plan.countersign_upfront_threshold_cents,
            "countersign_deposit_min_cents": plan.countersign_deposit_threshold_cents,
        },
    )

    lease_id = LeaseRepository(db).create_lease(application_id, record.firm_id, plan)
    generated = generate_obligations(plan, application_id, lease_id)
    obligations, created = ObligationRepository(db).insert_obligation_set(
        application_id,
        lease_id,
        plan_version,
        generated,
        build_scheduled_payments(generated),
    )
    if created:
        record_obligations(obligations)

    now = clock.now()
    applications.append_timeline(
        application_id,
        [
            TimelineEntry(
                at=now,
                by=actor,
                event="plan.set",
                meta={
                    "planVersion": plan_version,
                    "leaseId": str(lease_id),
                    "obligations": len(obligations),
                },
            )
        ],
    )

    min_ready = lifecycle.apply(
        application_id,
        Action.SYSTEM_MIN_READY,
        GuardFacts(role=Role.SYSTEM, terms=terms, min_rules=min_rules),
        "system",
        values={"countersign_allowed": not min_rules},
    )

    logger.info(
        "Payment plan set",
        extra={
            "application_id": str(application_id),
            "step": "plan_set",
            "plan_version": plan_version,
            "obligations": len(obligations),
            "to_status": min_ready.to_status.value,
        },
    )

    return PlanSetResult(
        plan=plan,
        plan_version=plan_version,
        status=min_ready.to_status.value,
        obligations=obligations,
        lease_id=lease_id,
        transitions=[set_terms, min_ready],
    )


def _is_retry(record: ApplicationRecord, plan: PaymentPlan, address: Optional[str]) -> bool:
    """The same plan was already accepted and the application is still in the plan stage"""
    return (
        record.status in PLAN_STAGES
        and record.payment_plan == plan
        and record.premises_address == address
    )


def _stored_plan(db: Session, record: ApplicationRecord) -> PlanSetResult:
    return PlanSetResult(
        plan=record.payment_plan,
        plan_version=record.plan_version,
        status=record.status,
        obligations=ObligationRepository(db).list_for_application(record.application_id),
        no_op=True,
    )

