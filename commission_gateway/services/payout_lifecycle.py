"""Payout lifecycle manager - approval, scheduling, and settlement of commission payouts"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence
from sqlalchemy.orm import Session

from commission_gateway.config import Settings, settings as default_settings
from commission_gateway.domain.commission import build_commission_inputs, compute_commission, parse_final_terms
from commission_gateway.domain.exceptions import (
    AlreadyApproved,
    DomainException,
    InvalidState,
    NotFound,
    PersistenceError,
    ValidationError,
)
from commission_gateway.domain.lifecycle import ensure_transition, parse_scheduled_date, validate_payment_method
from commission_gateway.domain.models import (
    CommissionResult,
    Deductions,
    EventType,
    FinalTerms,
    PayoutStatus,
    ScheduleOutcome,
    TransactionStatus,
)
from commission_gateway.infrastructure.database.models import Agent, CommissionPayout, Transaction
from commission_gateway.infrastructure.database.repositories import (
    AgentRepository,
    IdLike,
    PayoutRepository,
    TransactionRepository,
    translate_errors,
)
from commission_gateway.infrastructure.observability.logging import log_payout_transition
from commission_gateway.infrastructure.observability.metrics import (
    persistence_failures_counter,
    record_approval,
    record_transition,
)
from commission_gateway.services.audit import AuditTrailRecorder, json_safe
from commission_gateway.utils.date_utils import today_in_zone, utc_now

logger = logging.getLogger(__name__)


@dataclass
class ApprovalResult:
    """Outcome of approving a transaction"""

    transaction: Transaction
    payout: CommissionPayout
    commission: CommissionResult
    payout_created: bool
    warnings: List[str] = field(default_factory=list)


class PayoutLifecycleManager:
    """
    Sole writer of transaction status and commission payout rows.

    Every operation re-reads current state before checking preconditions and
    uses conditional updates, so a concurrent writer makes the loser fail
    with AlreadyApproved/InvalidState/Conflict instead of double-applying.
    """

    def __init__(
        self,
        db: Session,
        config: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.config = config or default_settings
        self.clock = clock
        self.transactions = TransactionRepository(db)
        self.payouts = PayoutRepository(db)
        self.agents = AgentRepository(db)
        self.audit = AuditTrailRecorder(db)

    def _commit(self) -> None:
        with translate_errors("commit"):
            self.db.commit()

    def _rollback(self, error: Exception) -> None:
        self.db.rollback()
        if isinstance(error, PersistenceError):
            persistence_failures_counter.inc()

    # Approval

    def approve_transaction(
        self,
        transaction_id: IdLike,
        final_data: Dict[str, Any],
        checklist_responses: Any,
        actor_id: str,
        actor_name: Optional[str] = None,
    ) -> ApprovalResult:
        """
        Approve a transaction with its final terms and create its payout.

        The status change, the payout insert and both audit events commit in a
        single database transaction; any failure rolls all of them back.

        Raises:
            NotFound: Transaction does not exist
            AlreadyApproved: Transaction was approved before (or concurrently)
            ValidationError: Final terms fail calculator validation
            Conflict: A concurrent request created the payout first
            PersistenceError: Database unavailable
        """
        try:
            result = self._approve(transaction_id, final_data, checklist_responses, actor_id, actor_name)
            self._commit()
        except Exception as e:
            self._rollback(e)
            if isinstance(e, DomainException):
                record_approval(False)
            raise

        record_approval(True, result.payout.payout_amount_cents if result.payout_created else None, result.commission.clamped)
        if result.commission.clamped:
            logger.warning(
                "Payout clamped to zero",
                extra={"transaction_id": str(result.transaction.id), "warnings": result.commission.warnings},
            )
        return result

    def _resolve_agent(self, transaction: Transaction, terms: FinalTerms) -> Optional[Agent]:
        if transaction.agent_id is not None:
            return self.agents.get_agent(transaction.agent_id)
        if terms.final_broker_agent_name:
            return self.agents.get_agent_by_name(terms.final_broker_agent_name)
        return None

    def _approve(
        self,
        transaction_id: IdLike,
        final_data: Dict[str, Any],
        checklist_responses: Any,
        actor_id: str,
        actor_name: Optional[str],
    ) -> ApprovalResult:
        transaction = self.transactions.get_transaction(transaction_id)
        if transaction is None:
            raise NotFound(f"Transaction {transaction_id} not found")
        if transaction.status == TransactionStatus.APPROVED.value:
            raise AlreadyApproved(f"Transaction {transaction_id} is already approved")

        terms = parse_final_terms(final_data)
        agent = self._resolve_agent(transaction, terms)
        deductions = Deductions()
        default_split = None
        if agent is not None:
            default_split = agent.split_percent
            deductions = Deductions(
                franchise_fee=agent.franchise_fee or 0,
                eo_fee=agent.eo_fee or 0,
                transaction_fee=agent.transaction_fee or 0,
                franchise_fee_percent=agent.franchise_fee_percent or 0,
            )

        inputs = build_commission_inputs(terms, default_split, deductions)
        if inputs.agent_split_percent is None:
            raise ValidationError("final_agent_split_percent is required when the agent has no default split")
        commission = compute_commission(inputs)

        now = self.clock()
        fields = {
            "intake_status": "completed",
            "final_broker_agent_name": terms.final_broker_agent_name,
            "property_address": terms.property_address,
            "final_sale_price": terms.final_sale_price,
            "final_listing_commission_percent": terms.final_listing_commission_percent,
            "final_buyer_commission_percent": terms.final_buyer_commission_percent,
            "final_agent_split_percent": inputs.agent_split_percent,
            "final_co_broker_agent_name": terms.final_co_broker_agent_name,
            "final_co_brokerage_firm_name": terms.final_co_brokerage_firm_name,
            "updated_at": now,
        }
        if agent is not None and transaction.agent_id is None:
            fields["agent_id"] = agent.id

        if not self.transactions.mark_approved(transaction.id, fields):
            raise AlreadyApproved(f"Transaction {transaction_id} was approved by a concurrent request")

        self.audit.record(
            transaction.id,
            EventType.MANUAL_APPROVAL,
            actor_id,
            {
                "final_data": terms,
                "checklist_responses": checklist_responses,
                "approved_at": now,
            },
            actor_name=actor_name,
        )

        warnings = list(commission.warnings)
        payout = self.payouts.get_payout_by_transaction(transaction.id)
        payout_created = payout is None
        if payout is None:
            payout = self.payouts.create_payout(
                transaction_id=transaction.id,
                agent_id=agent.id if agent is not None else None,
                payout_amount_cents=commission.agent_net_payout_cents,
                gross_commission_cents=int(commission.gross_commission_income * 100),
                agent_gross_cents=int(commission.agent_gross * 100),
                deductions_cents=int(commission.total_deductions * 100),
                clamped=commission.clamped,
                calculation=json_safe({"inputs": inputs, "result": commission}),
                status=PayoutStatus.READY.value,
            )
            self.audit.record(
                transaction.id,
                EventType.PAYOUT_CREATED,
                actor_id,
                {
                    "payout_id": payout.id,
                    "payout_amount": commission.agent_net_payout,
                    "created_via": "manual_approval",
                    "warnings": commission.warnings,
                },
                payout_id=payout.id,
                actor_name=actor_name,
            )
        else:
            warnings.append("Payout already exists for this transaction")

        transaction = self.transactions.get_transaction(transaction.id)
        return ApprovalResult(
            transaction=transaction,
            payout=payout,
            commission=commission,
            payout_created=payout_created,
            warnings=warnings,
        )

    # Scheduling

    def schedule_payouts(
        self,
        payout_ids: Sequence[str],
        scheduled_date: str,
        payment_method: str,
        auto_ach: bool,
        actor_id: str,
        provider_details: Optional[Dict[str, Any]] = None,
        actor_name: Optional[str] = None,
    ) -> List[ScheduleOutcome]:
        """
        Move each `ready` payout to `scheduled`, one commit per payout.

        Request-level problems (empty batch, unknown payment method, bad date)
        reject the whole call. Per-payout problems (missing, wrong state) are
        reported in that payout's outcome and do not roll back the others.

        Raises:
            ValidationError: Empty batch or unsupported payment method
            InvalidDate: Date malformed or before today in the business time zone
            PersistenceError: Database unavailable (payouts already committed stay scheduled)
        """
        if not payout_ids:
            raise ValidationError("At least one payout_id is required")
        validate_payment_method(payment_method, self.config.payment_methods)
        today = today_in_zone(self.config.business_timezone, self.clock())
        scheduled = parse_scheduled_date(scheduled_date, today)

        is_ach = payment_method == "ach"
        fields = {
            "status": PayoutStatus.SCHEDULED.value,
            "scheduled_date": scheduled,
            "payment_method": payment_method,
            "auto_ach": bool(auto_ach) or is_ach,
            "ach_provider": (provider_details or {}).get("provider") if is_ach else None,
            "ach_reference": (provider_details or {}).get("reference") if is_ach else None,
        }
        metadata = {
            "scheduled_date": scheduled,
            "payment_method": payment_method,
            "auto_ach": fields["auto_ach"],
            "provider_details": provider_details,
        }

        outcomes = []
        for payout_id in payout_ids:
            try:
                self._transition(
                    payout_id,
                    PayoutStatus.READY,
                    PayoutStatus.SCHEDULED,
                    fields,
                    EventType.PAYOUT_SCHEDULED,
                    actor_id,
                    actor_name,
                    metadata,
                )
                outcomes.append(ScheduleOutcome(payout_id=str(payout_id), success=True))
            except PersistenceError as e:
                self._rollback(e)
                raise
            except DomainException as e:
                self._rollback(e)
                outcomes.append(
                    ScheduleOutcome(payout_id=str(payout_id), success=False, error=e.message, kind=e.kind)
                )
        return outcomes

    # Settlement

    def settle_payout(
        self,
        payout_id: IdLike,
        outcome: str,
        actor_id: str,
        payment_reference: Optional[str] = None,
        failure_reason: Optional[str] = None,
        actor_name: Optional[str] = None,
    ) -> CommissionPayout:
        """
        Close a scheduled payout as `paid` or `failed`.

        Raises:
            ValidationError: Outcome is neither paid nor failed
            NotFound: Payout does not exist
            InvalidState: Payout is not currently scheduled
        """
        if outcome not in (PayoutStatus.PAID.value, PayoutStatus.FAILED.value):
            raise ValidationError("outcome must be 'paid' or 'failed'")
        target = PayoutStatus(outcome)

        if target == PayoutStatus.PAID:
            fields = {"status": target.value, "paid_at": self.clock(), "payment_reference": payment_reference}
            event_type = EventType.PAYOUT_PAID
        else:
            fields = {"status": target.value, "failure_reason": failure_reason}
            event_type = EventType.PAYOUT_FAILED

        try:
            payout = self._transition(
                payout_id,
                PayoutStatus.SCHEDULED,
                target,
                fields,
                event_type,
                actor_id,
                actor_name,
                {"payment_reference": payment_reference, "failure_reason": failure_reason},
            )
        except Exception as e:
            self._rollback(e)
            raise
        return payout

    def reject_payout(
        self,
        payout_id: IdLike,
        failure_reason: str,
        actor_id: str,
        actor_name: Optional[str] = None,
    ) -> CommissionPayout:
        """Fail a `ready` payout before it is ever scheduled (e.g. authorization refused)"""
        try:
            payout = self._transition(
                payout_id,
                PayoutStatus.READY,
                PayoutStatus.FAILED,
                {"status": PayoutStatus.FAILED.value, "failure_reason": failure_reason},
                EventType.PAYOUT_FAILED,
                actor_id,
                actor_name,
                {"failure_reason": failure_reason},
                visible_to_agent=False,
            )
        except Exception as e:
            self._rollback(e)
            raise
        return payout

    def _transition(
        self,
        payout_id: IdLike,
        expected: PayoutStatus,
        target: PayoutStatus,
        fields: Dict[str, Any],
        event_type: EventType,
        actor_id: str,
        actor_name: Optional[str],
        metadata: Dict[str, Any],
        visible_to_agent: bool = True,
    ) -> CommissionPayout:
        """Read, validate, conditionally update, audit, and commit one payout"""
        payout = self.payouts.get_payout(payout_id)
        if payout is None:
            raise NotFound(f"Payout {payout_id} not found")

        previous = payout.status
        if previous != expected.value:
            raise InvalidState(
                f"Cannot move payout {payout_id} to '{target.value}'. "
                f"Current status: {previous}. Only '{expected.value}' payouts qualify."
            )
        ensure_transition(previous, target)

        if not self.payouts.transition(payout.id, previous, {**fields, "updated_at": self.clock()}):
            raise InvalidState(f"Payout {payout_id} changed state concurrently")

        self.audit.record(
            payout.transaction_id,
            event_type,
            actor_id,
            {
                **metadata,
                "payout_id": payout.id,
                "payout_amount_cents": payout.payout_amount_cents,
                "previous_status": previous,
                "new_status": target.value,
            },
            payout_id=payout.id,
            actor_name=actor_name,
            visible_to_agent=visible_to_agent,
        )
        self._commit()

        record_transition(target.value)
        log_payout_transition(str(payout.id), previous, target.value, actor_id)
        return self.payouts.get_payout(payout.id)
