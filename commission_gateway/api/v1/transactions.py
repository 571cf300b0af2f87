"""Transaction endpoints - intake, approval, and audit trail"""

import logging
import time
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from commission_gateway.api.v1.schemas import (
    ApproveRequest,
    ApproveResponse,
    EventSchema,
    EventsResponse,
    IntakeRequest,
    PayoutSchema,
    TransactionSchema,
)
from commission_gateway.api.dependencies import (
    get_actor_id,
    get_actor_name,
    get_audit_recorder,
    get_lifecycle_manager,
    get_request_id,
)
from commission_gateway.api.retry import with_persistence_retry
from commission_gateway.domain.exceptions import NotFound
from commission_gateway.infrastructure.database.session import get_db
from commission_gateway.infrastructure.database.repositories import (
    AgentRepository,
    TransactionRepository,
    translate_errors,
)
from commission_gateway.infrastructure.observability.logging import log_approval
from commission_gateway.services.audit import AuditTrailRecorder
from commission_gateway.services.payout_lifecycle import PayoutLifecycleManager

router = APIRouter()


@router.post("/transactions", response_model=TransactionSchema, status_code=201)
def create_transaction(
    request_body: IntakeRequest,
    actor_id: str = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """Intake a new pending transaction"""
    agent_id = None
    if request_body.agent_id:
        agent = AgentRepository(db).get_agent(request_body.agent_id)
        if agent is None:
            raise NotFound(f"Agent {request_body.agent_id} not found")
        agent_id = agent.id

    transaction = TransactionRepository(db).create_transaction(
        agent_id=agent_id,
        final_broker_agent_name=request_body.final_broker_agent_name,
        property_address=request_body.property_address,
        intake_status="pending",
    )
    with translate_errors("commit transaction"):
        db.commit()
    db.refresh(transaction)
    logging.info("Transaction created", extra={"transaction_id": str(transaction.id), "actor_id": actor_id})
    return TransactionSchema.model_validate(transaction)


@router.get("/transactions/{transaction_id}", response_model=TransactionSchema)
def get_transaction(transaction_id: str, db: Session = Depends(get_db)):
    transaction = TransactionRepository(db).get_transaction(transaction_id)
    if transaction is None:
        raise NotFound(f"Transaction {transaction_id} not found")
    return TransactionSchema.model_validate(transaction)


@router.post("/transactions/approve", response_model=ApproveResponse)
def approve_transaction(
    request_body: ApproveRequest,
    request: Request,
    actor_id: str = Depends(get_actor_id),
    actor_name: str | None = Depends(get_actor_name),
    manager: PayoutLifecycleManager = Depends(get_lifecycle_manager),
):
    """
    Approve a transaction with its final terms and create the agent's payout.

    Flow:
    1. Validate final terms and compute commission
    2. Mark transaction approved (compare-and-swap on status)
    3. Create the payout (unique per transaction)
    4. Append manual_approval and payout_created events
    5. Commit all of the above together
    """
    start_time = time.time()
    request_id = get_request_id(request)

    result = with_persistence_retry(
        lambda: manager.approve_transaction(
            request_body.transaction_id,
            request_body.final_data.model_dump(),
            request_body.checklist_responses,
            actor_id,
            actor_name,
        )
    )

    duration_ms = (time.time() - start_time) * 1000
    log_approval(
        request_id,
        str(result.transaction.id),
        str(result.payout.id),
        result.payout.payout_amount_cents,
        duration_ms,
    )

    if not result.payout_created:
        message = "Transaction approved successfully, payout already existed"
    elif result.commission.clamped:
        message = "Transaction approved; payout clamped to zero because deductions exceed the agent's share"
    else:
        message = "Transaction approved and payout created successfully"

    return ApproveResponse(
        success=True,
        transaction=TransactionSchema.model_validate(result.transaction),
        payout=PayoutSchema.model_validate(result.payout),
        message=message,
        warnings=result.warnings,
    )


@router.get("/transactions/{transaction_id}/events", response_model=EventsResponse)
def list_transaction_events(
    transaction_id: str,
    recorder: AuditTrailRecorder = Depends(get_audit_recorder),
):
    """
    Retrieve the audit trail for a transaction.

    Returns:
        Events newest first; re-issuing the call reflects the current log
    """
    events = recorder.list_events(transaction_id)
    return EventsResponse(
        transaction_id=transaction_id,
        events=[EventSchema.model_validate(e) for e in events],
    )
