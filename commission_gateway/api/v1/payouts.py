"""Payout endpoints - scheduling, settlement, and lookup"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from commission_gateway.api.v1.schemas import (
    PayoutResponse,
    PayoutSchema,
    RejectRequest,
    ScheduleRequest,
    ScheduleResponse,
    ScheduleResult,
    SettleRequest,
)
from commission_gateway.api.dependencies import get_actor_id, get_actor_name, get_lifecycle_manager
from commission_gateway.api.retry import with_persistence_retry
from commission_gateway.domain.exceptions import NotFound
from commission_gateway.infrastructure.database.session import get_db
from commission_gateway.infrastructure.database.repositories import PayoutRepository
from commission_gateway.services.payout_lifecycle import PayoutLifecycleManager

router = APIRouter()


@router.get("/payouts/{payout_id}", response_model=PayoutSchema)
def get_payout(payout_id: str, db: Session = Depends(get_db)):
    payout = PayoutRepository(db).get_payout(payout_id)
    if payout is None:
        raise NotFound(f"Payout {payout_id} not found")
    return PayoutSchema.model_validate(payout)


@router.post("/payouts/schedule", response_model=ScheduleResponse)
def schedule_payouts(
    request_body: ScheduleRequest,
    actor_id: str = Depends(get_actor_id),
    actor_name: str | None = Depends(get_actor_name),
    manager: PayoutLifecycleManager = Depends(get_lifecycle_manager),
):
    """
    Schedule one or more `ready` payouts for payment.

    Each payout is evaluated on its own: failures are reported per item and
    do not undo payouts that were scheduled successfully.
    """
    provider_details = request_body.provider_details.model_dump() if request_body.provider_details else None
    outcomes = manager.schedule_payouts(
        request_body.all_payout_ids(),
        request_body.scheduled_date,
        request_body.payment_method,
        request_body.auto_ach,
        actor_id,
        provider_details=provider_details,
        actor_name=actor_name,
    )

    results = []
    for outcome in outcomes:
        payout = manager.payouts.get_payout(outcome.payout_id) if outcome.success else None
        results.append(
            ScheduleResult(
                payout_id=outcome.payout_id,
                success=outcome.success,
                payout=PayoutSchema.model_validate(payout) if payout is not None else None,
                error=outcome.error,
                kind=outcome.kind,
            )
        )

    scheduled_count = sum(1 for r in results if r.success)
    error_count = len(results) - scheduled_count
    if error_count == 0:
        message = f"All {scheduled_count} payout(s) scheduled successfully for {request_body.scheduled_date}"
    else:
        message = f"Scheduled {scheduled_count} payout(s), {error_count} failed"

    return ScheduleResponse(
        success=scheduled_count > 0,
        scheduled_count=scheduled_count,
        error_count=error_count,
        results=results,
        message=message,
    )


@router.post("/payouts/{payout_id}/settle", response_model=PayoutResponse)
def settle_payout(
    payout_id: str,
    request_body: SettleRequest,
    actor_id: str = Depends(get_actor_id),
    actor_name: str | None = Depends(get_actor_name),
    manager: PayoutLifecycleManager = Depends(get_lifecycle_manager),
):
    """Mark a scheduled payout as paid or failed"""
    payout = with_persistence_retry(
        lambda: manager.settle_payout(
            payout_id,
            request_body.outcome,
            actor_id,
            payment_reference=request_body.payment_reference,
            failure_reason=request_body.failure_reason,
            actor_name=actor_name,
        )
    )

    if payout.status == "paid":
        message = "Payout marked as paid"
    else:
        message = f"Payout failed{f': {payout.failure_reason}' if payout.failure_reason else ''}"
    return PayoutResponse(success=True, payout=PayoutSchema.model_validate(payout), message=message)


@router.post("/payouts/{payout_id}/reject", response_model=PayoutResponse)
def reject_payout(
    payout_id: str,
    request_body: RejectRequest,
    actor_id: str = Depends(get_actor_id),
    actor_name: str | None = Depends(get_actor_name),
    manager: PayoutLifecycleManager = Depends(get_lifecycle_manager),
):
    """Fail a ready payout that will never be scheduled"""
    payout = with_persistence_retry(
        lambda: manager.reject_payout(payout_id, request_body.failure_reason, actor_id, actor_name=actor_name)
    )
    return PayoutResponse(
        success=True,
        payout=PayoutSchema.model_validate(payout),
        message=f"Payout failed: {payout.failure_reason}",
    )
