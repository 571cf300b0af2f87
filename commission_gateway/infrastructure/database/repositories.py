"""Data access layer for transactions, payouts, agents, and audit events"""

import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Union
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from commission_gateway.infrastructure.database.models import (
    Agent,
    CommissionPayout,
    Transaction,
    TransactionEvent,
)
from commission_gateway.domain.exceptions import Conflict, PersistenceError
from commission_gateway.domain.models import TransactionStatus

IdLike = Union[str, uuid.UUID]


def to_uuid(value: IdLike) -> Optional[uuid.UUID]:
    """Coerce an id from the wire; malformed ids simply match nothing"""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """Map driver failures onto domain errors so callers never see SQLAlchemy types"""
    try:
        yield
    except IntegrityError as e:
        raise Conflict(f"Concurrent write conflict while trying to {action}") from e
    except SQLAlchemyError as e:
        raise PersistenceError(f"Database error while trying to {action}: {e.__class__.__name__}") from e


class AgentRepository:
    """Repository for agents and their commission plans"""

    def __init__(self, db: Session):
        self.db = db

    def create_agent(self, name: str, **fields: Any) -> Agent:
        with translate_errors("create agent"):
            db_agent = Agent(name=name, **fields)
            self.db.add(db_agent)
            self.db.flush()
        return db_agent

    def get_agent(self, agent_id: IdLike) -> Optional[Agent]:
        key = to_uuid(agent_id)
        if key is None:
            return None
        with translate_errors("load agent"):
            return self.db.get(Agent, key)

    def get_agent_by_name(self, name: str) -> Optional[Agent]:
        with translate_errors("load agent"):
            return self.db.query(Agent).filter(Agent.name == name).first()


class TransactionRepository:
    """Repository for real-estate transactions"""

    def __init__(self, db: Session):
        self.db = db

    def create_transaction(self, **fields: Any) -> Transaction:
        """Persist a new pending transaction (intake)"""
        with translate_errors("create transaction"):
            db_transaction = Transaction(status=TransactionStatus.PENDING.value, **fields)
            self.db.add(db_transaction)
            self.db.flush()  # Get ID without committing
        return db_transaction

    def get_transaction(self, transaction_id: IdLike) -> Optional[Transaction]:
        key = to_uuid(transaction_id)
        if key is None:
            return None
        with translate_errors("load transaction"):
            return self.db.get(Transaction, key, populate_existing=True)

    def mark_approved(self, transaction_id: uuid.UUID, fields: Dict[str, Any]) -> bool:
        """
        Compare-and-swap the transaction into `approved` with its final terms.

        Returns False when another writer approved it first.
        """
        with translate_errors("approve transaction"):
            updated = (
                self.db.query(Transaction)
                .filter(
                    Transaction.id == transaction_id,
                    Transaction.status != TransactionStatus.APPROVED.value,
                )
                .update(
                    {**fields, "status": TransactionStatus.APPROVED.value},
                    synchronize_session="fetch",
                )
            )
        return updated == 1


class PayoutRepository:
    """Repository for commission payouts"""

    def __init__(self, db: Session):
        self.db = db

    def create_payout(self, **fields: Any) -> CommissionPayout:
        """Insert a payout; the unique transaction_id turns a duplicate into Conflict"""
        with translate_errors("create payout"):
            db_payout = CommissionPayout(**fields)
            self.db.add(db_payout)
            self.db.flush()
        return db_payout

    def get_payout(self, payout_id: IdLike) -> Optional[CommissionPayout]:
        key = to_uuid(payout_id)
        if key is None:
            return None
        with translate_errors("load payout"):
            return self.db.get(CommissionPayout, key, populate_existing=True)

    def get_payout_by_transaction(self, transaction_id: uuid.UUID) -> Optional[CommissionPayout]:
        with translate_errors("load payout"):
            return (
                self.db.query(CommissionPayout)
                .filter(CommissionPayout.transaction_id == transaction_id)
                .first()
            )

    def transition(self, payout_id: uuid.UUID, from_status: str, fields: Dict[str, Any]) -> bool:
        """
        Update a payout only if it is still in `from_status` (optimistic concurrency).

        Returns False when the row moved on since it was read.
        """
        with translate_errors("update payout"):
            updated = (
                self.db.query(CommissionPayout)
                .filter(
                    CommissionPayout.id == payout_id,
                    CommissionPayout.status == from_status,
                )
                .update(fields, synchronize_session="fetch")
            )
        return updated == 1


class EventRepository:
    """Repository for the append-only transaction event log"""

    def __init__(self, db: Session):
        self.db = db

    def append_event(
        self,
        transaction_id: uuid.UUID,
        event_type: str,
        actor_id: str,
        metadata: Dict[str, Any],
        payout_id: Optional[uuid.UUID] = None,
        actor_name: Optional[str] = None,
        visible_to_agent: bool = True,
    ) -> TransactionEvent:
        with translate_errors("append event"):
            db_event = TransactionEvent(
                transaction_id=transaction_id,
                payout_id=payout_id,
                event_type=event_type,
                actor_id=actor_id,
                actor_name=actor_name,
                event_metadata=metadata,
                visible_to_agent=visible_to_agent,
            )
            self.db.add(db_event)
            self.db.flush()
        return db_event

    def list_events(self, transaction_id: uuid.UUID, limit: Optional[int] = None) -> List[TransactionEvent]:
        """Fetch events for a transaction, newest first"""
        with translate_errors("list events"):
            query = (
                self.db.query(TransactionEvent)
                .filter(TransactionEvent.transaction_id == transaction_id)
                .order_by(TransactionEvent.id.desc())
            )
            if limit is not None:
                query = query.limit(limit)
            return query.all()
