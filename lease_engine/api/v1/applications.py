"""Application records and their timeline"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lease_engine.api.dependencies import get_clock, parse_application_id
from lease_engine.api.v1.presenters import application_response
from lease_engine.api.v1.schemas import (
    ApplicationResponse,
    CreateApplicationRequest,
    TimelineItem,
    TimelineResponse,
)
from lease_engine.domain.clock import Clock
from lease_engine.domain.identifiers import ApplicationId
from lease_engine.domain.lifecycle import ApplicationStatus
from lease_engine.infrastructure.database.repositories import ApplicationRepository
from lease_engine.infrastructure.database.session import get_db

router = APIRouter()


@router.post("/applications", response_model=ApplicationResponse, status_code=201)
def create_application(
    request_body: CreateApplicationRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Open a draft application for an applicant at a firm"""
    record = ApplicationRepository(db).create_application(
        firm_id=request_body.firm_id,
        applicant_id=request_body.applicant_id,
        status=ApplicationStatus.DRAFT,
        at=clock.now(),
        by=request_body.applicant_id,
    )
    db.commit()
    return application_response(record)


@router.get("/applications/{application_id}", response_model=ApplicationResponse)
def get_application(
    application_id: ApplicationId = Depends(parse_application_id),
    db: Session = Depends(get_db),
):
    return application_response(ApplicationRepository(db).get(application_id))


@router.get("/applications/{application_id}/timeline", response_model=TimelineResponse)
def get_timeline(
    application_id: ApplicationId = Depends(parse_application_id),
    db: Session = Depends(get_db),
):
    """Full application history, oldest first"""
    repo = ApplicationRepository(db)
    repo.get(application_id)
    entries = repo.get_timeline(application_id)
    return TimelineResponse(
        application_id=str(application_id),
        entries=[TimelineItem(seq=e.seq, at=e.at, by=e.by, event=e.event, meta=e.meta) for e in entries],
    )
