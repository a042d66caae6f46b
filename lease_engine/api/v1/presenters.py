"""Domain values -> response schemas"""

from typing import Dict, Iterable, List

from lease_engine.domain.lifecycle import allowed_actions
from lease_engine.domain.models import (
    AllocationResult,
    ApplicationRecord,
    Bucket,
    Obligation,
    PaymentPlan,
    ScheduledPayment,
)
from lease_engine.api.v1.schemas import (
    ApplicationResponse,
    ChargeSchema,
    ObligationSchema,
    OverageSchema,
    PaymentPlanSchema,
    ScheduledPaymentSchema,
    UpfrontTotalsSchema,
)


def application_response(record: ApplicationRecord) -> ApplicationResponse:
    return ApplicationResponse(
        application_id=str(record.application_id),
        firm_id=record.firm_id,
        applicant_id=record.applicant_id,
        status=record.status,
        premises_address=record.premises_address,
        plan_version=record.plan_version,
        countersign_allowed=record.countersign_allowed,
        countersign_upfront_min_cents=record.countersign_upfront_min_cents,
        countersign_deposit_min_cents=record.countersign_deposit_min_cents,
        allowed_actions=[a.value for a in allowed_actions(record.status)],
    )


def plan_schema(plan: PaymentPlan) -> PaymentPlanSchema:
    totals = plan.upfront_totals
    return PaymentPlanSchema(
        monthly_rent_cents=plan.monthly_rent_cents,
        term_months=plan.term_months,
        start_date=plan.start_date,
        end_date=plan.end_date,
        security_cents=plan.security_cents,
        key_fee_cents=plan.key_fee_cents,
        require_first_before_move_in=plan.require_first_before_move_in,
        require_last_before_move_in=plan.require_last_before_move_in,
        countersign_upfront_threshold_cents=plan.countersign_upfront_threshold_cents,
        countersign_deposit_threshold_cents=plan.countersign_deposit_threshold_cents,
        upfront_max_cents=plan.upfront_max_cents,
        deposit_max_cents=plan.deposit_max_cents,
        upfront_totals=UpfrontTotalsSchema(
            first_cents=totals.first_cents,
            last_cents=totals.last_cents,
            key_cents=totals.key_cents,
            security_cents=totals.security_cents,
            other_upfront_cents=totals.other_upfront_cents,
            total_upfront_cents=totals.total_upfront_cents,
        ),
        priority=list(plan.priority),
    )


def obligation_schemas(obligations: Iterable[Obligation]) -> List[ObligationSchema]:
    return [
        ObligationSchema(
            key=o.key,
            label=o.label,
            group=o.group.value,
            amount_cents=o.amount_cents,
            due_on=o.due_on,
            priority=o.priority,
            pre_sign_gate=o.pre_sign_gate,
            paid_cents=o.paid_cents,
            status=o.status.value,
        )
        for o in obligations
    ]


def scheduled_schemas(scheduled: Iterable[ScheduledPayment]) -> List[ScheduledPaymentSchema]:
    return [
        ScheduledPaymentSchema(
            obligation_key=s.obligation_key,
            due_date=s.due_date,
            amount_cents=s.amount_cents,
            currency=s.currency,
            label=s.label,
            bucket=s.bucket,
            status=s.status,
        )
        for s in scheduled
    ]


def bucket_totals(totals: Dict[Bucket, int]) -> Dict[str, int]:
    return {bucket.value: cents for bucket, cents in totals.items()}


def charge_schemas(result: AllocationResult) -> List[ChargeSchema]:
    return [
        ChargeSchema(
            charge_key=c.charge_key,
            bucket=c.bucket.value,
            code=c.code,
            amount_cents=c.amount_cents,
            priority_index=c.priority_index,
            posted_cents=result.posted(c.charge_key),
            pending_cents=result.pending(c.charge_key),
        )
        for c in sorted(result.charges, key=lambda c: (c.priority_index, c.code))
    ]


def overage_schemas(result: AllocationResult) -> List[OverageSchema]:
    return [
        OverageSchema(
            payment_id=str(o.payment_id) if o.payment_id else None,
            bucket=o.bucket.value,
            remaining_cents=o.remaining_cents,
        )
        for o in result.overages
    ]
