"""Audit trail recorder - sole writer of transaction events"""

import uuid
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from commission_gateway.domain.exceptions import NotFound
from commission_gateway.domain.models import EventType
from commission_gateway.infrastructure.database.models import TransactionEvent
from commission_gateway.infrastructure.database.repositories import (
    EventRepository,
    IdLike,
    TransactionRepository,
)


def json_safe(value: Any) -> Any:
    """Convert Decimals, dates, UUIDs and dataclasses into JSON column friendly values"""
    if is_dataclass(value) and not isinstance(value, type):
        return json_safe(asdict(value))
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


class AuditTrailRecorder:
    """
    Appends immutable events describing every state change.

    Writes join the caller's open database transaction, so a mutation and its
    event commit or roll back together.
    """

    def __init__(self, db: Session):
        self.events = EventRepository(db)
        self.transactions = TransactionRepository(db)

    def record(
        self,
        transaction_id: uuid.UUID,
        event_type: EventType,
        actor_id: str,
        metadata: Dict[str, Any],
        payout_id: Optional[uuid.UUID] = None,
        actor_name: Optional[str] = None,
        visible_to_agent: bool = True,
    ) -> int:
        """Append one event and return its id"""
        db_event = self.events.append_event(
            transaction_id=transaction_id,
            event_type=event_type.value,
            actor_id=actor_id,
            actor_name=actor_name,
            metadata=json_safe(metadata),
            payout_id=payout_id,
            visible_to_agent=visible_to_agent,
        )
        return db_event.id

    def list_events(self, transaction_id: IdLike) -> List[TransactionEvent]:
        """Current event log for a transaction, newest first"""
        transaction = self.transactions.get_transaction(transaction_id)
        if transaction is None:
            raise NotFound(f"Transaction {transaction_id} not found")
        return self.events.list_events(transaction.id)
