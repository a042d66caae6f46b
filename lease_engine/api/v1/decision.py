"""Landlord decisions and system/tenant lifecycle events"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from lease_engine.api.dependencies import (
    get_clock,
    get_request_id,
    get_status_webhook_client,
    parse_application_id,
)
from lease_engine.api.v1.schemas import DecisionRequest, EventRequest, TransitionResponse
from lease_engine.domain.clock import Clock
from lease_engine.domain.exceptions import DomainException
from lease_engine.domain.identifiers import ApplicationId
from lease_engine.domain.lifecycle import Action, GuardFacts, Transition
from lease_engine.infrastructure.clients.status_webhook import StatusWebhookClient
from lease_engine.infrastructure.database.session import get_db
from lease_engine.services.lifecycle import LifecycleService
from lease_engine.services.payments import guard_facts_for

router = APIRouter()


def notify_status_change(
    background_tasks: BackgroundTasks,
    webhook_client: StatusWebhookClient,
    application_id: ApplicationId,
    transition: Transition,
) -> None:
    """Schedule the status-change webhook for an applied (not no-op) transition"""
    if transition.no_op or not webhook_client.enabled:
        return
    background_tasks.add_task(
        webhook_client.send_status_event,
        {
            "event": "STATUS_CHANGED",
            "application_id": str(application_id),
            "from": transition.from_status.value,
            "to": transition.to_status.value,
            "via": transition.action.value,
        },
    )


def transition_response(application_id: ApplicationId, transition: Transition) -> TransitionResponse:
    return TransitionResponse(
        application_id=str(application_id),
        action=transition.action.value,
        from_status=transition.from_status.value,
        status=transition.to_status.value,
        no_op=transition.no_op,
    )


@router.post("/applications/{application_id}/decision", response_model=TransitionResponse)
def decide(
    request_body: DecisionRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    application_id: ApplicationId = Depends(parse_application_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    webhook_client: StatusWebhookClient = Depends(get_status_webhook_client),
):
    """
    Landlord decision: preliminary_accept, approve or reject.

    Repeating a decision that already took effect returns 200 with no_op.
    A decision that no longer applies (status moved on) returns 409 with the
    status actually stored.
    """
    request_id = get_request_id(request)
    try:
        transition = LifecycleService(db, clock).apply(
            application_id,
            Action(request_body.action),
            GuardFacts(role=request_body.role),
            request_body.actor,
            meta={"reason": request_body.reason} if request_body.reason else None,
        )
        db.commit()
    except DomainException as e:
        db.rollback()
        logging.info(f"Decision refused: {e}", extra={"request_id": request_id})
        raise

    notify_status_change(background_tasks, webhook_client, application_id, transition)
    return transition_response(application_id, transition)


@router.post("/applications/{application_id}/events", response_model=TransitionResponse)
def apply_event(
    request_body: EventRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    application_id: ApplicationId = Depends(parse_application_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    webhook_client: StatusWebhookClient = Depends(get_status_webhook_client),
):
    """
    Any other lifecycle action (submit, withdraw, signatures_completed,
    tick_clock, ...). Guard facts other than the caller-supplied
    acknowledgement and signature count are derived from stored data.
    """
    request_id = get_request_id(request)
    try:
        facts = guard_facts_for(
            db,
            application_id,
            request_body.role,
            clock,
            members_ack=request_body.members_ack,
            signatures_count=request_body.signatures_count,
        )
        transition = LifecycleService(db, clock).apply(
            application_id, request_body.action, facts, request_body.actor
        )
        db.commit()
    except DomainException as e:
        db.rollback()
        logging.info(f"Event refused: {e}", extra={"request_id": request_id})
        raise

    notify_status_change(background_tasks, webhook_client, application_id, transition)
    return transition_response(application_id, transition)
