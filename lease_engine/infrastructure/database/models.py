"""SQLAlchemy ORM models for applications, obligations and payments"""

import uuid
from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class Application(Base):
    """Rental application; `status` is only ever written by compare-and-swap"""

    __tablename__ = "application"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    firm_id = Column(Text, nullable=False, index=True)
    applicant_id = Column(Text, nullable=False, index=True)
    status = Column(Text, nullable=False, default="draft")
    premises_address = Column(Text, nullable=True)
    payment_plan = Column(JSON, nullable=True)
    plan_version = Column(Integer, nullable=False, default=0)
    countersign_allowed = Column(Boolean, nullable=False, default=False)
    countersign_upfront_min_cents = Column(BigInteger, nullable=False, default=0)
    countersign_deposit_min_cents = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    # Read-only; ApplicationRepository.append_timeline is the only writer
    timeline = relationship("TimelineEvent", order_by="TimelineEvent.seq", viewonly=True)
    leases = relationship("Lease", back_populates="application", cascade="all, delete-orphan")


class TimelineEvent(Base):
    """Append-only application history"""

    __tablename__ = "application_timeline"
    __table_args__ = (UniqueConstraint("application_id", "seq", name="uq_timeline_seq"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(Uuid(as_uuid=True), ForeignKey("application.id", ondelete="CASCADE"), nullable=False)
    seq = Column(Integer, nullable=False)
    at = Column(DateTime(timezone=True), nullable=False)
    by = Column(Text, nullable=False)
    event = Column(Text, nullable=False)
    meta = Column(JSON, nullable=True)


class Lease(Base):
    """Unsigned lease created when the payment plan is set"""

    __tablename__ = "lease"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(Uuid(as_uuid=True), ForeignKey("application.id", ondelete="CASCADE"), nullable=False)
    firm_id = Column(Text, nullable=False)
    rent_cents = Column(BigInteger, nullable=False)
    term_months = Column(Integer, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    landlord_signed = Column(Boolean, nullable=False, default=False)
    tenant_signed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    application = relationship("Application", back_populates="leases")


class ObligationSet(Base):
    """One materialized obligation set per (application, plan version)"""

    __tablename__ = "obligation_set"
    __table_args__ = (UniqueConstraint("application_id", "plan_version", name="uq_obligation_set_plan"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(Uuid(as_uuid=True), ForeignKey("application.id", ondelete="CASCADE"), nullable=False)
    lease_id = Column(Uuid(as_uuid=True), ForeignKey("lease.id", ondelete="SET NULL"), nullable=True)
    plan_version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    obligations = relationship(
        "ObligationRow",
        back_populates="obligation_set",
        order_by="ObligationRow.priority",
        cascade="all, delete-orphan",
    )


class ObligationRow(Base):
    """Trackable money obligation; paid_cents is materialized from the allocator"""

    __tablename__ = "obligation"
    __table_args__ = (UniqueConstraint("obligation_set_id", "key", name="uq_obligation_key"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    obligation_set_id = Column(Uuid(as_uuid=True), ForeignKey("obligation_set.id", ondelete="CASCADE"), nullable=False)
    application_id = Column(Uuid(as_uuid=True), ForeignKey("application.id", ondelete="CASCADE"), nullable=False, index=True)
    lease_id = Column(Uuid(as_uuid=True), ForeignKey("lease.id", ondelete="SET NULL"), nullable=True)
    key = Column(Text, nullable=False)
    label = Column(Text, nullable=False)
    group = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    due_on = Column(Date, nullable=True)
    priority = Column(Integer, nullable=False)
    pre_sign_gate = Column(Boolean, nullable=False, default=False)
    paid_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(Text, nullable=False, default="due")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    obligation_set = relationship("ObligationSet", back_populates="obligations")


class ScheduledPaymentRow(Base):
    """Calendar view of dated obligations"""

    __tablename__ = "scheduled_payment"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(Uuid(as_uuid=True), ForeignKey("application.id", ondelete="CASCADE"), nullable=False, index=True)
    lease_id = Column(Uuid(as_uuid=True), ForeignKey("lease.id", ondelete="SET NULL"), nullable=True)
    obligation_id = Column(Uuid(as_uuid=True), ForeignKey("obligation.id", ondelete="CASCADE"), nullable=False)
    due_date = Column(Date, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    currency = Column(Text, nullable=False, default="USD")
    label = Column(Text, nullable=False)
    bucket = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="scheduled")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PaymentRow(Base):
    """Payment as last reported by the provider (normalized kind/status)"""

    __tablename__ = "payment"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(Uuid(as_uuid=True), ForeignKey("application.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_ref = Column(Text, nullable=True, unique=True)
    kind = Column(Text, nullable=False)
    status = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    currency = Column(Text, nullable=False, default="USD")
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)
