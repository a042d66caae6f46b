"""Domain models - pure Python dataclasses representing lease money entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from lease_engine.domain.exceptions import InvalidPayment
from lease_engine.domain.identifiers import ApplicationId, LeaseId, ObligationId, PaymentId


class Bucket(str, Enum):
    """Independent payment pools, not cross-funded by default"""

    UPFRONT = "upfront"  # move-in fees + rent
    DEPOSIT = "deposit"  # security deposit


class ObligationGroup(str, Enum):
    UPFRONT = "upfront"
    DEPOSIT = "deposit"
    RENT = "rent"
    FEE = "fee"


class ObligationStatus(str, Enum):
    DUE = "due"
    PARTIAL = "partial"
    PAID = "paid"


class PaymentKind(str, Enum):
    HOLDING = "holding"
    UPFRONT = "upfront"
    DEPOSIT = "deposit"
    RENT = "rent"
    FEE = "fee"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"
    SCHEDULED = "scheduled"

    @classmethod
    def normalize(cls, raw: str) -> "PaymentKind":
        """Provider-sourced "operating" money belongs to the upfront pool"""
        value = str(raw or "").strip().lower()
        if value == "operating":
            return cls.UPFRONT
        try:
            return cls(value)
        except ValueError as e:
            raise InvalidPayment(f"Unknown payment kind: {raw!r}") from e


class PaymentStatus(str, Enum):
    REQUIRES_ACTION = "requires_action"
    SCHEDULED = "scheduled"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELED = "canceled"
    PROCESSING = "processing"

    @classmethod
    def normalize(cls, raw: str) -> "PaymentStatus":
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError as e:
            raise InvalidPayment(f"Unknown payment status: {raw!r}") from e


@dataclass(frozen=True)
class UpfrontTotals:
    """Money due before move-in, split by line"""

    first_cents: int
    last_cents: int
    key_cents: int
    security_cents: int

    @property
    def other_upfront_cents(self) -> int:
        """First + last + key ("other up-front fees")"""
        return self.first_cents + self.last_cents + self.key_cents

    @property
    def total_upfront_cents(self) -> int:
        return self.other_upfront_cents + self.security_cents


@dataclass(frozen=True)
class MinRule:
    """Countersign minimum for one bucket"""

    bucket: Bucket
    min_cents: int


@dataclass(frozen=True)
class RawLeaseTerms:
    """Landlord-entered terms before validation/clamping"""

    monthly_rent_cents: Any
    start_date: Any
    term_months: Any = None
    security_cents: int = 0
    key_fee_cents: int = 0
    require_first_before_move_in: bool = False
    require_last_before_move_in: bool = False
    countersign_upfront_threshold_cents: int = 0
    countersign_deposit_threshold_cents: int = 0


@dataclass(frozen=True)
class PaymentPlan:
    """Canonical, clamped lease financial terms. Built only by build_payment_plan."""

    monthly_rent_cents: int
    term_months: Optional[int]
    start_date: date
    end_date: Optional[date]
    security_cents: int
    key_fee_cents: int
    require_first_before_move_in: bool
    require_last_before_move_in: bool
    countersign_upfront_threshold_cents: int
    countersign_deposit_threshold_cents: int
    upfront_max_cents: int
    deposit_max_cents: int
    upfront_totals: UpfrontTotals
    priority: Tuple[str, ...]

    def min_rules(self) -> List[MinRule]:
        """Countersign rules from the clamped thresholds, only those > 0"""
        rules = []
        if self.countersign_upfront_threshold_cents > 0:
            rules.append(MinRule(Bucket.UPFRONT, self.countersign_upfront_threshold_cents))
        if self.countersign_deposit_threshold_cents > 0:
            rules.append(MinRule(Bucket.DEPOSIT, self.countersign_deposit_threshold_cents))
        return rules

    def to_document(self) -> Dict[str, Any]:
        """JSON-safe document stored on the application record"""
        totals = self.upfront_totals
        return {
            "monthlyRentCents": self.monthly_rent_cents,
            "termMonths": self.term_months,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "securityCents": self.security_cents,
            "keyFeeCents": self.key_fee_cents,
            "requireFirstBeforeMoveIn": self.require_first_before_move_in,
            "requireLastBeforeMoveIn": self.require_last_before_move_in,
            "countersignUpfrontThresholdCents": self.countersign_upfront_threshold_cents,
            "countersignDepositThresholdCents": self.countersign_deposit_threshold_cents,
            "upfrontMaxCents": self.upfront_max_cents,
            "depositMaxCents": self.deposit_max_cents,
            "upfrontTotals": {
                "firstCents": totals.first_cents,
                "lastCents": totals.last_cents,
                "keyCents": totals.key_cents,
                "securityCents": totals.security_cents,
                "otherUpfrontCents": totals.other_upfront_cents,
                "totalUpfrontCents": totals.total_upfront_cents,
            },
            "priority": list(self.priority),
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "PaymentPlan":
        """
        Rehydrate a stored plan. Thresholds are trusted as stored: clamping
        happened once when the plan was built.
        """
        totals = doc["upfrontTotals"]
        end_raw = doc.get("endDate")
        return cls(
            monthly_rent_cents=int(doc["monthlyRentCents"]),
            term_months=doc.get("termMonths"),
            start_date=date.fromisoformat(doc["startDate"]),
            end_date=date.fromisoformat(end_raw) if end_raw else None,
            security_cents=int(doc["securityCents"]),
            key_fee_cents=int(doc["keyFeeCents"]),
            require_first_before_move_in=bool(doc["requireFirstBeforeMoveIn"]),
            require_last_before_move_in=bool(doc["requireLastBeforeMoveIn"]),
            countersign_upfront_threshold_cents=int(doc["countersignUpfrontThresholdCents"]),
            countersign_deposit_threshold_cents=int(doc["countersignDepositThresholdCents"]),
            upfront_max_cents=int(doc["upfrontMaxCents"]),
            deposit_max_cents=int(doc["depositMaxCents"]),
            upfront_totals=UpfrontTotals(
                first_cents=int(totals["firstCents"]),
                last_cents=int(totals["lastCents"]),
                key_cents=int(totals["keyCents"]),
                security_cents=int(totals["securityCents"]),
            ),
            priority=tuple(doc.get("priority") or ()),
        )


@dataclass(frozen=True)
class Terms:
    """Snapshot of the lease terms taken when terms are set"""

    address: str
    rent_cents: int
    start_date: Optional[date]
    end_date: Optional[date] = None
    deposit_cents: int = 0


@dataclass(frozen=True)
class Obligation:
    """A single dated, trackable money amount owed by the tenant"""

    application_id: ApplicationId
    lease_id: Optional[LeaseId]
    key: str  # first | last | key_fee | security | rent:YYYY:MM
    label: str
    group: ObligationGroup
    amount_cents: int
    due_on: Optional[date]
    priority: int  # lower allocates first
    pre_sign_gate: bool
    paid_cents: int = 0
    status: ObligationStatus = ObligationStatus.DUE
    obligation_id: Optional[ObligationId] = None

    @property
    def open_cents(self) -> int:
        return max(0, self.amount_cents - self.paid_cents)


@dataclass(frozen=True)
class ScheduledPayment:
    """Calendar view of a dated obligation"""

    obligation_key: str
    due_date: date
    amount_cents: int
    currency: str
    label: str
    bucket: str  # "standard" | "deposit"
    status: str = "scheduled"


@dataclass(frozen=True)
class Charge:
    """On-demand stand-in for an obligation, keyed appId:bucket:code"""

    charge_key: str
    bucket: Bucket
    code: str
    amount_cents: int
    priority_index: int


@dataclass(frozen=True)
class Payment:
    """Normalized payment as reported by the provider"""

    kind: PaymentKind
    status: PaymentStatus
    amount_cents: int
    created_at: datetime
    payment_id: Optional[PaymentId] = None
    provider_ref: Optional[str] = None

    def __post_init__(self) -> None:
        if isinstance(self.amount_cents, bool) or not isinstance(self.amount_cents, int) or self.amount_cents <= 0:
            raise InvalidPayment(f"Payment amount must be a positive integer of cents, got {self.amount_cents!r}")


@dataclass(frozen=True)
class ChargeAllocation:
    charge_key: str
    posted_cents: int = 0
    pending_cents: int = 0


@dataclass(frozen=True)
class Overage:
    """Payment money left unassigned after allocation; a fact, not an error"""

    payment_id: Optional[PaymentId]
    bucket: Bucket
    remaining_cents: int


@dataclass
class AllocationResult:
    """Posted/pending cents per charge key plus unassigned overages"""

    charges: List[Charge] = field(default_factory=list)
    by_charge: Dict[str, ChargeAllocation] = field(default_factory=dict)
    overages: List[Overage] = field(default_factory=list)

    def posted(self, charge_key: str) -> int:
        alloc = self.by_charge.get(charge_key)
        return alloc.posted_cents if alloc else 0

    def pending(self, charge_key: str) -> int:
        alloc = self.by_charge.get(charge_key)
        return alloc.pending_cents if alloc else 0

    def posted_by_bucket(self) -> Dict[Bucket, int]:
        totals = {Bucket.UPFRONT: 0, Bucket.DEPOSIT: 0}
        for charge in self.charges:
            totals[charge.bucket] += self.posted(charge.charge_key)
        return totals

    def pending_by_bucket(self) -> Dict[Bucket, int]:
        totals = {Bucket.UPFRONT: 0, Bucket.DEPOSIT: 0}
        for charge in self.charges:
            totals[charge.bucket] += self.pending(charge.charge_key)
        return totals

    @property
    def unassigned_cents(self) -> int:
        return sum(o.remaining_cents for o in self.overages)


@dataclass(frozen=True)
class DepositSpillover:
    """Holding money applied to other up-front fees first, excess to the deposit"""

    expected_other_cents: int
    expected_deposit_cents: int
    paid_cents: int
    pending_cents: int
    remaining_other_cents: int
    spill_to_deposit_cents: int
    remaining_deposit_cents: int
    unassigned_cents: int


@dataclass(frozen=True)
class TimelineEntry:
    """Immutable, ordered entry of an application's history"""

    at: datetime
    by: str
    event: str
    meta: Dict[str, Any] = field(default_factory=dict)
    seq: Optional[int] = None


@dataclass(frozen=True)
class ApplicationRecord:
    """Application fields the engine reads; status is the lifecycle value"""

    application_id: ApplicationId
    firm_id: str
    applicant_id: str
    status: str
    premises_address: Optional[str] = None
    payment_plan: Optional[PaymentPlan] = None
    plan_version: int = 0
    countersign_allowed: bool = False
    countersign_upfront_min_cents: int = 0
    countersign_deposit_min_cents: int = 0
    updated_at: Optional[datetime] = None

    def min_rules(self) -> List[MinRule]:
        """Countersign rules, preferring the stored gate over the plan"""
        rules = []
        if self.countersign_upfront_min_cents > 0:
            rules.append(MinRule(Bucket.UPFRONT, self.countersign_upfront_min_cents))
        if self.countersign_deposit_min_cents > 0:
            rules.append(MinRule(Bucket.DEPOSIT, self.countersign_deposit_min_cents))
        if not rules and self.payment_plan is not None:
            return self.payment_plan.min_rules()
        return rules
