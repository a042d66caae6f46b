"""Data access layer: ORM rows in, typed domain records out"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from lease_engine.domain.exceptions import ApplicationNotFound, InvalidPayment
from lease_engine.domain.identifiers import ApplicationId, LeaseId, ObligationId, PaymentId
from lease_engine.domain.models import (
    ApplicationRecord,
    Obligation,
    ObligationGroup,
    ObligationStatus,
    Payment,
    PaymentKind,
    PaymentPlan,
    PaymentStatus,
    ScheduledPayment,
    TimelineEntry,
)
from lease_engine.infrastructure.database.models import (
    Application,
    Lease,
    ObligationRow,
    ObligationSet,
    PaymentRow,
    ScheduledPaymentRow,
    TimelineEvent,
)


def _utc(moment: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything stored is UTC
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=timezone.utc)


def _status_value(status: Any) -> str:
    return getattr(status, "value", status)


class ApplicationRepository:
    """Repository for applications and their timeline"""

    def __init__(self, db: Session):
        self.db = db

    def create_application(
        self,
        firm_id: str,
        applicant_id: str,
        status: str,
        at: datetime,
        by: str = "system",
    ) -> ApplicationRecord:
        """Insert an application with its first timeline entry"""
        row = Application(
            id=ApplicationId.new().value,
            firm_id=firm_id,
            applicant_id=applicant_id,
            status=_status_value(status),
            updated_at=at,
        )
        self.db.add(row)
        self.db.flush()
        application_id = ApplicationId(row.id)
        self.append_timeline(
            application_id,
            [TimelineEntry(at=at, by=by, event="application.created", meta={"status": row.status})],
        )
        return self._to_domain(row)

    def get(self, application_id: ApplicationId) -> ApplicationRecord:
        """Fetch the application as currently stored (bypasses the identity map)"""
        row = self.db.get(Application, application_id.value, populate_existing=True)
        if row is None:
            raise ApplicationNotFound(application_id)
        return self._to_domain(row)

    def current_status(self, application_id: ApplicationId) -> Optional[str]:
        return self.db.execute(
            select(Application.status).where(Application.id == application_id.value)
        ).scalar_one_or_none()

    def compare_and_swap_status(
        self,
        application_id: ApplicationId,
        expected: Sequence[Any],
        target: Any,
        at: datetime,
        values: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Set status (and any extra columns) only if the stored status is one of
        `expected`. Single conditional UPDATE; returns False when no row matched.
        """
        stmt = (
            update(Application)
            .where(
                Application.id == application_id.value,
                Application.status.in_([_status_value(s) for s in expected]),
            )
            .values(status=_status_value(target), updated_at=at, **(values or {}))
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        return result.rowcount == 1

    def append_timeline(self, application_id: ApplicationId, entries: Iterable[TimelineEntry]) -> None:
        """Append entries after the last sequence number; existing entries are never touched"""
        last_seq = self.db.execute(
            select(func.max(TimelineEvent.seq)).where(TimelineEvent.application_id == application_id.value)
        ).scalar()
        seq = last_seq or 0
        for entry in entries:
            seq += 1
            self.db.add(
                TimelineEvent(
                    application_id=application_id.value,
                    seq=seq,
                    at=entry.at,
                    by=entry.by,
                    event=entry.event,
                    meta=entry.meta or None,
                )
            )
        self.db.flush()

    def get_timeline(self, application_id: ApplicationId) -> List[TimelineEntry]:
        rows = self.db.execute(
            select(TimelineEvent)
            .where(TimelineEvent.application_id == application_id.value)
            .order_by(TimelineEvent.seq)
        ).scalars()
        return [
            TimelineEntry(at=_utc(r.at), by=r.by, event=r.event, meta=r.meta or {}, seq=r.seq)
            for r in rows
        ]

    @staticmethod
    def _to_domain(row: Application) -> ApplicationRecord:
        return ApplicationRecord(
            application_id=ApplicationId(row.id),
            firm_id=row.firm_id,
            applicant_id=row.applicant_id,
            status=row.status,
            premises_address=row.premises_address,
            payment_plan=PaymentPlan.from_document(row.payment_plan) if row.payment_plan else None,
            plan_version=row.plan_version or 0,
            countersign_allowed=bool(row.countersign_allowed),
            countersign_upfront_min_cents=row.countersign_upfront_min_cents or 0,
            countersign_deposit_min_cents=row.countersign_deposit_min_cents or 0,
            updated_at=_utc(row.updated_at),
        )


class LeaseRepository:
    """Repository for unsigned leases"""

    def __init__(self, db: Session):
        self.db = db

    def create_lease(self, application_id: ApplicationId, firm_id: str, plan: PaymentPlan) -> LeaseId:
        row = Lease(
            id=LeaseId.new().value,
            application_id=application_id.value,
            firm_id=firm_id,
            rent_cents=plan.monthly_rent_cents,
            term_months=plan.term_months,
            start_date=plan.start_date,
            end_date=plan.end_date,
        )
        self.db.add(row)
        self.db.flush()
        return LeaseId(row.id)


class ObligationRepository:
    """Repository for obligation sets, obligations and their scheduled payments"""

    def __init__(self, db: Session):
        self.db = db

    def insert_obligation_set(
        self,
        application_id: ApplicationId,
        lease_id: Optional[LeaseId],
        plan_version: int,
        obligations: List[Obligation],
        scheduled: List[ScheduledPayment],
    ) -> Tuple[List[Obligation], bool]:
        """
        Bulk insert obligations (and their calendar rows) once per plan version.

        Returns (obligations, created). A second call for the same
        (application, plan_version) writes nothing and returns the stored set.
        """
        existing = self._find_set(application_id, plan_version)
        if existing is not None:
            return self._rows_for_set(existing.id), False

        obligation_set = ObligationSet(
            application_id=application_id.value,
            lease_id=lease_id.value if lease_id else None,
            plan_version=plan_version,
        )
        self.db.add(obligation_set)
        self.db.flush()

        rows_by_key: Dict[str, ObligationRow] = {}
        for o in obligations:
            row = ObligationRow(
                id=ObligationId.new().value,
                obligation_set_id=obligation_set.id,
                application_id=application_id.value,
                lease_id=lease_id.value if lease_id else None,
                key=o.key,
                label=o.label,
                group=o.group.value,
                amount_cents=o.amount_cents,
                due_on=o.due_on,
                priority=o.priority,
                pre_sign_gate=o.pre_sign_gate,
                paid_cents=0,
                status=ObligationStatus.DUE.value,
            )
            self.db.add(row)
            rows_by_key[o.key] = row
        self.db.flush()

        for s in scheduled:
            self.db.add(
                ScheduledPaymentRow(
                    application_id=application_id.value,
                    lease_id=lease_id.value if lease_id else None,
                    obligation_id=rows_by_key[s.obligation_key].id,
                    due_date=s.due_date,
                    amount_cents=s.amount_cents,
                    currency=s.currency,
                    label=s.label,
                    bucket=s.bucket,
                    status=s.status,
                )
            )
        self.db.flush()

        return [self._to_domain(rows_by_key[o.key]) for o in obligations], True

    def list_for_application(self, application_id: ApplicationId) -> List[Obligation]:
        """Obligations of the latest plan version, in priority order"""
        latest = self.db.execute(
            select(func.max(ObligationSet.plan_version)).where(ObligationSet.application_id == application_id.value)
        ).scalar()
        if latest is None:
            return []
        rows = self.db.execute(
            select(ObligationRow)
            .join(ObligationSet, ObligationRow.obligation_set_id == ObligationSet.id)
            .where(ObligationSet.application_id == application_id.value, ObligationSet.plan_version == latest)
            .order_by(ObligationRow.priority, ObligationRow.key)
            .execution_options(populate_existing=True)
        ).scalars()
        return [self._to_domain(r) for r in rows]

    def save_paid(self, obligations: Iterable[Obligation], at: datetime) -> int:
        """Write materialized paid_cents/status; the only writer of those columns"""
        count = 0
        for o in obligations:
            if o.obligation_id is None:
                continue
            self.db.execute(
                update(ObligationRow)
                .where(ObligationRow.id == o.obligation_id.value)
                .values(paid_cents=o.paid_cents, status=o.status.value, updated_at=at)
                .execution_options(synchronize_session=False)
            )
            count += 1
        return count

    def list_scheduled(self, application_id: ApplicationId) -> List[ScheduledPayment]:
        rows = self.db.execute(
            select(ScheduledPaymentRow, ObligationRow.key)
            .join(ObligationRow, ScheduledPaymentRow.obligation_id == ObligationRow.id)
            .where(ScheduledPaymentRow.application_id == application_id.value)
            .order_by(ScheduledPaymentRow.due_date, ObligationRow.priority)
        ).all()
        return [
            ScheduledPayment(
                obligation_key=key,
                due_date=row.due_date,
                amount_cents=row.amount_cents,
                currency=row.currency,
                label=row.label,
                bucket=row.bucket,
                status=row.status,
            )
            for row, key in rows
        ]

    def _rows_for_set(self, obligation_set_id) -> List[Obligation]:
        rows = self.db.execute(
            select(ObligationRow)
            .where(ObligationRow.obligation_set_id == obligation_set_id)
            .order_by(ObligationRow.priority, ObligationRow.key)
        ).scalars()
        return [self._to_domain(r) for r in rows]

    def _find_set(self, application_id: ApplicationId, plan_version: int) -> Optional[ObligationSet]:
        return self.db.execute(
            select(ObligationSet).where(
                ObligationSet.application_id == application_id.value,
                ObligationSet.plan_version == plan_version,
            )
        ).scalar_one_or_none()

    @staticmethod
    def _to_domain(row: ObligationRow) -> Obligation:
        return Obligation(
            application_id=ApplicationId(row.application_id),
            lease_id=LeaseId(row.lease_id) if row.lease_id else None,
            key=row.key,
            label=row.label,
            group=ObligationGroup(row.group),
            amount_cents=row.amount_cents,
            due_on=row.due_on,
            priority=row.priority,
            pre_sign_gate=bool(row.pre_sign_gate),
            paid_cents=row.paid_cents or 0,
            status=ObligationStatus(row.status),
            obligation_id=ObligationId(row.id),
        )


class PaymentRepository:
    """Repository for provider-reported payments"""

    def __init__(self, db: Session):
        self.db = db

    def record(self, application_id: ApplicationId, payment: Payment, at: datetime) -> Payment:
        """
        Store a payment, or update its status when the provider reference is
        already known (repeated webhook deliveries for the same payment).
        """
        row = None
        if payment.provider_ref:
            row = self.db.execute(
                select(PaymentRow).where(PaymentRow.provider_ref == payment.provider_ref)
            ).scalar_one_or_none()

        if row is not None:
            if row.application_id != application_id.value:
                raise InvalidPayment(f"Payment {payment.provider_ref} belongs to another application")
            row.status = payment.status.value
            row.updated_at = at
        else:
            row = PaymentRow(
                id=(payment.payment_id or PaymentId.new()).value,
                application_id=application_id.value,
                provider_ref=payment.provider_ref,
                kind=payment.kind.value,
                status=payment.status.value,
                amount_cents=payment.amount_cents,
                created_at=payment.created_at,
                updated_at=at,
            )
            self.db.add(row)
        self.db.flush()
        return self._to_domain(row)

    def list_for_application(
        self,
        application_id: ApplicationId,
        statuses: Optional[Iterable[PaymentStatus]] = None,
    ) -> List[Payment]:
        stmt = select(PaymentRow).where(PaymentRow.application_id == application_id.value)
        if statuses is not None:
            stmt = stmt.where(PaymentRow.status.in_([s.value for s in statuses]))
        rows = self.db.execute(stmt.order_by(PaymentRow.created_at)).scalars()
        return [self._to_domain(r) for r in rows]

    @staticmethod
    def _to_domain(row: PaymentRow) -> Payment:
        return Payment(
            kind=PaymentKind.normalize(row.kind),
            status=PaymentStatus.normalize(row.status),
            amount_cents=row.amount_cents,
            created_at=_utc(row.created_at),
            payment_id=PaymentId(row.id),
            provider_ref=row.provider_ref,
        )
