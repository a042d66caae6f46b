"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from lease_engine.domain.lifecycle import Action, Role


class CreateApplicationRequest(BaseModel):
    """Request body for POST /v1/applications"""

    firm_id: str = Field(..., min_length=1, description="Landlord firm identifier")
    applicant_id: str = Field(..., min_length=1, description="Tenant identifier")


class ApplicationResponse(BaseModel):
    application_id: str
    firm_id: str
    applicant_id: str
    status: str
    premises_address: Optional[str] = None
    plan_version: int = 0
    countersign_allowed: bool = False
    countersign_upfront_min_cents: int = 0
    countersign_deposit_min_cents: int = 0
    allowed_actions: List[str] = []


class DecisionRequest(BaseModel):
    """Request body for POST /v1/applications/{id}/decision"""

    action: Literal["preliminary_accept", "approve", "reject"]
    role: Role
    actor: str = Field(..., min_length=1, description="Id of the firm user deciding")
    reason: Optional[str] = None


class EventRequest(BaseModel):
    """Request body for POST /v1/applications/{id}/events"""

    action: Action
    role: Role
    actor: str = Field(..., min_length=1)
    members_ack: bool = False
    signatures_count: int = Field(0, ge=0)


class TransitionResponse(BaseModel):
    application_id: str
    action: str
    from_status: str
    status: str
    no_op: bool = False


class PlanRequest(BaseModel):
    """Landlord-entered lease terms. Amounts are integer cents."""

    premises_address: str = Field(..., min_length=1)
    monthly_rent_cents: int
    start_date: str = Field(..., description="YYYY-MM-DD")
    term_months: Optional[int] = None
    security_cents: int = 0
    key_fee_cents: int = 0
    require_first_before_move_in: bool = False
    require_last_before_move_in: bool = False
    countersign_upfront_threshold_cents: int = 0
    countersign_deposit_threshold_cents: int = 0
    role: Role
    actor: str = Field(..., min_length=1)


class UpfrontTotalsSchema(BaseModel):
    first_cents: int
    last_cents: int
    key_cents: int
    security_cents: int
    other_upfront_cents: int
    total_upfront_cents: int


class PaymentPlanSchema(BaseModel):
    monthly_rent_cents: int
    term_months: Optional[int] = None
    start_date: date
    end_date: Optional[date] = None
    security_cents: int
    key_fee_cents: int
    require_first_before_move_in: bool
    require_last_before_move_in: bool
    countersign_upfront_threshold_cents: int
    countersign_deposit_threshold_cents: int
    upfront_max_cents: int
    deposit_max_cents: int
    upfront_totals: UpfrontTotalsSchema
    priority: List[str]


class ObligationSchema(BaseModel):
    key: str
    label: str
    group: str
    amount_cents: int
    due_on: Optional[date] = None
    priority: int
    pre_sign_gate: bool
    paid_cents: int
    status: str


class ScheduledPaymentSchema(BaseModel):
    obligation_key: str
    due_date: date
    amount_cents: int
    currency: str
    label: str
    bucket: str
    status: str = "scheduled"


class PlanResponse(BaseModel):
    """Response for POST/GET /v1/applications/{id}/plan"""

    application_id: str
    status: str
    plan_version: int
    plan: PaymentPlanSchema
    obligations: List[ObligationSchema]
    scheduled_payments: List[ScheduledPaymentSchema] = []
    no_op: bool = False


class PaymentRequest(BaseModel):
    """A payment as reported by the provider (kind/status are normalized server-side)"""

    kind: str = Field(..., description="holding | upfront | operating | deposit | rent | fee | ...")
    status: str = Field(..., description="succeeded | processing | failed | ...")
    amount_cents: int = Field(..., gt=0)
    created_at: datetime
    provider_ref: Optional[str] = None


class PaymentResponse(BaseModel):
    application_id: str
    status: str
    obligations: List[ObligationSchema]
    gate_totals: Dict[str, int]
    unassigned_cents: int
    transitioned: bool = False


class ChargeSchema(BaseModel):
    charge_key: str
    bucket: str
    code: str
    amount_cents: int
    priority_index: int
    posted_cents: int
    pending_cents: int


class OverageSchema(BaseModel):
    payment_id: Optional[str] = None
    bucket: str
    remaining_cents: int


class AllocationResponse(BaseModel):
    """Response for GET /v1/applications/{id}/allocations"""

    application_id: str
    charges: List[ChargeSchema]
    posted_by_bucket: Dict[str, int]
    pending_by_bucket: Dict[str, int]
    overages: List[OverageSchema]
    unassigned_cents: int


class PaymentTasksResponse(BaseModel):
    """Response for GET /v1/applications/{id}/payment-tasks"""

    application_id: str
    expected_other_cents: int
    expected_deposit_cents: int
    paid_cents: int
    pending_cents: int
    remaining_other_cents: int
    spill_to_deposit_cents: int
    remaining_deposit_cents: int
    unassigned_cents: int


class TimelineItem(BaseModel):
    seq: Optional[int] = None
    at: datetime
    by: str
    event: str
    meta: Dict[str, Any] = {}


class TimelineResponse(BaseModel):
    application_id: str
    entries: List[TimelineItem]
