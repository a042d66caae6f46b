"""Payments in, allocation views out"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from lease_engine.api.dependencies import (
    get_clock,
    get_request_id,
    get_status_webhook_client,
    parse_application_id,
)
from lease_engine.api.v1.decision import notify_status_change
from lease_engine.api.v1.presenters import (
    bucket_totals,
    charge_schemas,
    obligation_schemas,
    overage_schemas,
)
from lease_engine.api.v1.schemas import (
    AllocationResponse,
    PaymentRequest,
    PaymentResponse,
    PaymentTasksResponse,
)
from lease_engine.domain.clock import Clock
from lease_engine.domain.exceptions import DomainException
from lease_engine.domain.identifiers import ApplicationId
from lease_engine.domain.models import Payment, PaymentKind, PaymentStatus
from lease_engine.infrastructure.clients.status_webhook import StatusWebhookClient
from lease_engine.infrastructure.database.repositories import ApplicationRepository
from lease_engine.infrastructure.database.session import get_db
from lease_engine.services.payments import allocation_summary, payment_tasks, record_payment

router = APIRouter()


@router.post("/applications/{application_id}/payments", response_model=PaymentResponse)
def post_payment(
    request_body: PaymentRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    application_id: ApplicationId = Depends(parse_application_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    webhook_client: StatusWebhookClient = Depends(get_status_webhook_client),
):
    """
    Record a provider payment (or a status update of one already recorded,
    matched on provider_ref) and recompute paid amounts. Moves the
    application to min_paid once the countersign minimums are met.
    """
    request_id = get_request_id(request)
    try:
        payment = Payment(
            kind=PaymentKind.normalize(request_body.kind),
            status=PaymentStatus.normalize(request_body.status),
            amount_cents=request_body.amount_cents,
            created_at=request_body.created_at,
            provider_ref=request_body.provider_ref,
        )
        result = record_payment(db, application_id, payment, clock, request_id=request_id)
        db.commit()
    except DomainException as e:
        db.rollback()
        logging.info(f"Payment refused: {e}", extra={"request_id": request_id})
        raise

    transitioned = result.transition is not None and not result.transition.no_op
    if result.transition is not None:
        notify_status_change(background_tasks, webhook_client, application_id, result.transition)

    record = ApplicationRepository(db).get(application_id)
    return PaymentResponse(
        application_id=str(application_id),
        status=record.status,
        obligations=obligation_schemas(result.obligations),
        gate_totals=bucket_totals(result.gate_totals),
        unassigned_cents=result.allocation.unassigned_cents,
        transitioned=transitioned,
    )


@router.get("/applications/{application_id}/allocations", response_model=AllocationResponse)
def get_allocations(
    application_id: ApplicationId = Depends(parse_application_id),
    include_rent: bool = True,
    skip_prepaid_months: bool = False,
    db: Session = Depends(get_db),
):
    """Posted/pending cents per plan charge; computed on the fly, nothing stored"""
    summary = allocation_summary(
        db,
        application_id,
        include_rent=include_rent,
        skip_prepaid_months=skip_prepaid_months,
    )
    return AllocationResponse(
        application_id=str(application_id),
        charges=charge_schemas(summary.allocation),
        posted_by_bucket=bucket_totals(summary.posted_by_bucket),
        pending_by_bucket=bucket_totals(summary.pending_by_bucket),
        overages=overage_schemas(summary.allocation),
        unassigned_cents=summary.allocation.unassigned_cents,
    )


@router.get("/applications/{application_id}/payment-tasks", response_model=PaymentTasksResponse)
def get_payment_tasks(
    application_id: ApplicationId = Depends(parse_application_id),
    db: Session = Depends(get_db),
):
    """Holding money split: other up-front fees first, excess to the deposit"""
    tasks = payment_tasks(db, application_id)
    return PaymentTasksResponse(
        application_id=str(application_id),
        expected_other_cents=tasks.expected_other_cents,
        expected_deposit_cents=tasks.expected_deposit_cents,
        paid_cents=tasks.paid_cents,
        pending_cents=tasks.pending_cents,
        remaining_other_cents=tasks.remaining_other_cents,
        spill_to_deposit_cents=tasks.spill_to_deposit_cents,
        remaining_deposit_cents=tasks.remaining_deposit_cents,
        unassigned_cents=tasks.unassigned_cents,
    )
