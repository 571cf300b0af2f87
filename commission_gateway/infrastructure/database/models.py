"""SQLAlchemy ORM models for transactions, commission payouts, and their audit trail"""

import uuid
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    Text,
    Uuid,
    event,
)
from sqlalchemy.orm import Session, declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class Agent(Base):
    """Agent and the commission plan applied to their deals"""

    __tablename__ = "agents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False, unique=True)
    email = Column(Text, nullable=True)
    split_percent = Column(Numeric(7, 4), nullable=True)
    franchise_fee = Column(Numeric(14, 2), nullable=False, default=0)
    eo_fee = Column(Numeric(14, 2), nullable=False, default=0)
    transaction_fee = Column(Numeric(14, 2), nullable=False, default=0)
    franchise_fee_percent = Column(Numeric(7, 4), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    transactions = relationship("Transaction", back_populates="agent")


class Transaction(Base):
    """Real-estate deal; financial fields are frozen once approved"""

    __tablename__ = "transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    agent_id = Column(Uuid, ForeignKey("agents.id"), nullable=True, index=True)
    status = Column(Text, nullable=False, default="pending")
    intake_status = Column(Text, nullable=True)
    final_broker_agent_name = Column(Text, nullable=True)
    property_address = Column(Text, nullable=True)
    final_sale_price = Column(Numeric(14, 2), nullable=True)
    final_listing_commission_percent = Column(Numeric(7, 4), nullable=True)
    final_buyer_commission_percent = Column(Numeric(7, 4), nullable=True)
    final_agent_split_percent = Column(Numeric(7, 4), nullable=True)
    final_co_broker_agent_name = Column(Text, nullable=True)
    final_co_brokerage_firm_name = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    agent = relationship("Agent", back_populates="transactions")
    payout = relationship("CommissionPayout", back_populates="transaction", uselist=False)


class CommissionPayout(Base):
    """Disbursement owed to an agent; at most one per transaction"""

    __tablename__ = "commission_payouts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # unique=True is the idempotency guard: a second insert for the same deal fails
    transaction_id = Column(Uuid, ForeignKey("transactions.id"), nullable=False, unique=True)
    agent_id = Column(Uuid, ForeignKey("agents.id"), nullable=True)
    payout_amount_cents = Column(BigInteger, nullable=False)
    gross_commission_cents = Column(BigInteger, nullable=False)
    agent_gross_cents = Column(BigInteger, nullable=False)
    deductions_cents = Column(BigInteger, nullable=False, default=0)
    clamped = Column(Boolean, nullable=False, default=False)
    calculation = Column(JSON, nullable=True)
    status = Column(Text, nullable=False, default="ready")
    scheduled_date = Column(Date, nullable=True)
    payment_method = Column(Text, nullable=True)
    auto_ach = Column(Boolean, nullable=False, default=False)
    ach_provider = Column(Text, nullable=True)
    ach_reference = Column(Text, nullable=True)
    payment_reference = Column(Text, nullable=True)
    failure_reason = Column(Text, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    transaction = relationship("Transaction", back_populates="payout")


class TransactionEvent(Base):
    """
    Append-only audit record of a state-changing action.

    The ORM refuses UPDATE and DELETE of these rows, both through the unit of
    work and through bulk `update()`/`delete()` statements run on a Session.
    Core statements against the bare table bypass the ORM entirely; the
    database role used by the service should only hold INSERT and SELECT on
    `transaction_events`.
    """

    __tablename__ = "transaction_events"

    # Integer key gives a strict append order for newest-first listing
    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(Uuid, ForeignKey("transactions.id"), nullable=False, index=True)
    payout_id = Column(Uuid, ForeignKey("commission_payouts.id"), nullable=True)
    event_type = Column(Text, nullable=False)
    actor_id = Column(Text, nullable=False)
    actor_name = Column(Text, nullable=True)
    event_metadata = Column("metadata", JSON, nullable=True)
    visible_to_agent = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


@event.listens_for(TransactionEvent, "before_update")
def _reject_event_update(mapper, connection, target):
    raise ValueError("transaction_events rows are append-only")


@event.listens_for(TransactionEvent, "before_delete")
def _reject_event_delete(mapper, connection, target):
    raise ValueError("transaction_events rows are append-only")


@event.listens_for(Session, "do_orm_execute")
def _reject_bulk_event_writes(orm_execute_state):
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    mapper = orm_execute_state.bind_mapper
    if mapper is not None and mapper.class_ is TransactionEvent:
        raise ValueError("transaction_events rows are append-only")
