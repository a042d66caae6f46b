"""Payment plan: set (landlord terms) and read back with obligations"""

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
from lease_engine.api.v1.presenters import obligation_schemas, plan_schema, scheduled_schemas
from lease_engine.api.v1.schemas import PlanRequest, PlanResponse
from lease_engine.domain.clock import Clock
from lease_engine.domain.exceptions import DomainException, PlanNotSet
from lease_engine.domain.identifiers import ApplicationId
from lease_engine.domain.models import RawLeaseTerms
from lease_engine.infrastructure.clients.status_webhook import StatusWebhookClient
from lease_engine.infrastructure.database.repositories import ApplicationRepository, ObligationRepository
from lease_engine.infrastructure.database.session import get_db
from lease_engine.services.leasing import set_payment_plan

router = APIRouter()


@router.post("/applications/{application_id}/plan", response_model=PlanResponse)
def set_plan(
    request_body: PlanRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    application_id: ApplicationId = Depends(parse_application_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    webhook_client: StatusWebhookClient = Depends(get_status_webhook_client),
):
    """
    Set the lease terms of an approved application.

    Flow:
    1. Validate and clamp the terms into a payment plan (422 on bad terms)
    2. approved_high -> terms_set, storing the plan
    3. Create the lease, its obligations and scheduled payments
    4. terms_set -> min_due (or countersigned when no minimum is configured)

    All of it commits together or not at all.
    """
    request_id = get_request_id(request)
    raw_terms = RawLeaseTerms(
        monthly_rent_cents=request_body.monthly_rent_cents,
        start_date=request_body.start_date,
        term_months=request_body.term_months,
        security_cents=request_body.security_cents,
        key_fee_cents=request_body.key_fee_cents,
        require_first_before_move_in=request_body.require_first_before_move_in,
        require_last_before_move_in=request_body.require_last_before_move_in,
        countersign_upfront_threshold_cents=request_body.countersign_upfront_threshold_cents,
        countersign_deposit_threshold_cents=request_body.countersign_deposit_threshold_cents,
    )
    try:
        result = set_payment_plan(
            db,
            application_id,
            raw_terms,
            request_body.premises_address,
            request_body.role,
            request_body.actor,
            clock,
        )
        db.commit()
    except DomainException as e:
        db.rollback()
        logging.info(f"Plan refused: {e}", extra={"request_id": request_id})
        raise
    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error setting plan: {e}", extra={"request_id": request_id})
        raise

    for transition in result.transitions:
        notify_status_change(background_tasks, webhook_client, application_id, transition)

    return PlanResponse(
        application_id=str(application_id),
        status=result.status,
        plan_version=result.plan_version,
        plan=plan_schema(result.plan),
        obligations=obligation_schemas(result.obligations),
        scheduled_payments=scheduled_schemas(ObligationRepository(db).list_scheduled(application_id)),
        no_op=result.no_op,
    )


@router.get("/applications/{application_id}/plan", response_model=PlanResponse)
def get_plan(
    application_id: ApplicationId = Depends(parse_application_id),
    db: Session = Depends(get_db),
):
    """Stored plan, current obligations (with paid amounts) and the payment calendar"""
    record = ApplicationRepository(db).get(application_id)
    if record.payment_plan is None:
        raise PlanNotSet(application_id)

    obligations = ObligationRepository(db)
    return PlanResponse(
        application_id=str(application_id),
        status=record.status,
        plan_version=record.plan_version,
        plan=plan_schema(record.payment_plan),
        obligations=obligation_schemas(obligations.list_for_application(application_id)),
        scheduled_payments=scheduled_schemas(obligations.list_scheduled(application_id)),
    )
