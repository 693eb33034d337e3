"""SQLAlchemy ORM models for invoices, payment plans and their installments"""

import uuid
from sqlalchemy import (
    Column,
    String,
    BigInteger,
    Boolean,
    DateTime,
    Date,
    Integer,
    ForeignKey,
    Text,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class Invoice(Base):
    """Invoice owned by billing; the engine only touches plan bookkeeping columns"""

    __tablename__ = "invoice"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(Text, nullable=False, index=True)
    total_cents = Column(BigInteger, nullable=False)
    balance_cents = Column(BigInteger, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    has_active_plan = Column(Boolean, nullable=False, default=False)
    payment_method = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PaymentPlan(Base):
    """Installment payment plan attached to one invoice"""

    __tablename__ = "payment_plan"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoice.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Text, nullable=False, index=True)
    total_cents = Column(BigInteger, nullable=False)
    number_of_installments = Column(Integer, nullable=False)
    installment_cents = Column(BigInteger, nullable=False)
    frequency = Column(String(20), nullable=False)
    start_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="active", index=True)

    terms_accepted = Column(Boolean, nullable=False, default=False)
    terms_accepted_at = Column(DateTime(timezone=True), nullable=True)

    late_fees_enabled = Column(Boolean, nullable=False, default=True)
    late_fee_cents = Column(BigInteger, nullable=False, default=0)
    grace_period_days = Column(Integer, nullable=False, default=7)

    reminder_settings = Column(JSON, nullable=True)

    auto_pay_enabled = Column(Boolean, nullable=False, default=False)
    auto_pay_method = Column(Text, nullable=True)

    modification_count = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)

    created_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    installments = relationship(
        "PlanInstallment",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="PlanInstallment.installment_number",
    )
    modifications = relationship("PlanModification", back_populates="plan", cascade="all, delete-orphan")


class PlanInstallment(Base):
    """Individual installment within a payment plan"""

    __tablename__ = "plan_installment"
    __table_args__ = (UniqueConstraint("plan_id", "installment_number", name="uq_plan_installment_number"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_id = Column(UUID(as_uuid=True), ForeignKey("payment_plan.id", ondelete="CASCADE"), nullable=False, index=True)
    installment_number = Column(Integer, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending", index=True)

    paid_cents = Column(BigInteger, nullable=False, default=0)
    paid_date = Column(Date, nullable=True)
    payment_method = Column(Text, nullable=True)
    transaction_id = Column(Text, nullable=True)
    receipt_number = Column(Text, nullable=True)

    late_fee_applied = Column(Boolean, nullable=False, default=False)
    late_fee_cents = Column(BigInteger, nullable=False, default=0)
    late_fee_date = Column(Date, nullable=True)

    auto_payment_attempts = Column(Integer, nullable=False, default=0)
    last_auto_payment_attempt = Column(DateTime(timezone=True), nullable=True)
    auto_payment_failures = Column(JSON, nullable=True)

    reminders_sent = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    plan = relationship("PaymentPlan", back_populates="installments")


class PlanModification(Base):
    """Append-only audit entry for a schedule change"""

    __tablename__ = "plan_modification"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_id = Column(UUID(as_uuid=True), ForeignKey("payment_plan.id", ondelete="CASCADE"), nullable=False, index=True)
    new_schedule = Column(JSON, nullable=False)
    reason_en = Column(Text, nullable=False)
    reason_ar = Column(Text, nullable=False)
    modified_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    plan = relationship("PaymentPlan", back_populates="modifications")


class LateFee(Base):
    """Late fee charged to an installment; at most one per installment"""

    __tablename__ = "late_fee"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    installment_id = Column(
        UUID(as_uuid=True),
        ForeignKey("plan_installment.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    amount_cents = Column(BigInteger, nullable=False)
    applied_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
