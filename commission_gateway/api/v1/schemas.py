"""Pydantic schemas for API request/response validation"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# Financial inputs arrive as strings or numbers; the calculator parses them
NumericInput = Optional[Union[str, int, float]]


class FinalData(BaseModel):
    """Final deal terms captured during manual verification"""

    final_broker_agent_name: Optional[str] = None
    property_address: Optional[str] = None
    final_sale_price: NumericInput = None
    final_listing_commission_percent: NumericInput = None
    final_buyer_commission_percent: NumericInput = None
    final_agent_split_percent: NumericInput = None
    final_co_broker_agent_name: Optional[str] = None
    final_co_brokerage_firm_name: Optional[str] = None


class ApproveRequest(BaseModel):
    """Request body for POST /v1/transactions/approve"""

    transaction_id: str = Field(..., min_length=1, description="Transaction identifier")
    final_data: FinalData
    checklist_responses: Any = None  # any JSON value, stored verbatim in the approval event


class IntakeRequest(BaseModel):
    """Request body for POST /v1/transactions"""

    agent_id: Optional[str] = None
    final_broker_agent_name: Optional[str] = None
    property_address: Optional[str] = None


class TransactionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    agent_id: Optional[uuid.UUID] = None
    status: str
    intake_status: Optional[str] = None
    final_broker_agent_name: Optional[str] = None
    property_address: Optional[str] = None
    final_sale_price: Optional[Decimal] = None
    final_listing_commission_percent: Optional[Decimal] = None
    final_buyer_commission_percent: Optional[Decimal] = None
    final_agent_split_percent: Optional[Decimal] = None
    final_co_broker_agent_name: Optional[str] = None
    final_co_brokerage_firm_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PayoutSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    transaction_id: uuid.UUID
    agent_id: Optional[uuid.UUID] = None
    payout_amount_cents: int
    gross_commission_cents: int
    agent_gross_cents: int
    deductions_cents: int
    clamped: bool
    status: str
    scheduled_date: Optional[date] = None
    payment_method: Optional[str] = None
    auto_ach: bool
    ach_provider: Optional[str] = None
    ach_reference: Optional[str] = None
    payment_reference: Optional[str] = None
    failure_reason: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ApproveResponse(BaseModel):
    """Response for POST /v1/transactions/approve"""

    success: bool
    transaction: TransactionSchema
    payout: Optional[PayoutSchema] = None
    message: str
    warnings: List[str] = []


class ProviderDetails(BaseModel):
    provider: Optional[str] = None
    reference: Optional[str] = None


class ScheduleRequest(BaseModel):
    """Request body for POST /v1/payouts/schedule (single id or bulk)"""

    payout_ids: List[str] = []
    payout_id: Optional[str] = None
    scheduled_date: str = Field(..., description="YYYY-MM-DD, evaluated in the business time zone")
    payment_method: str
    auto_ach: bool = False
    provider_details: Optional[ProviderDetails] = None

    def all_payout_ids(self) -> List[str]:
        if self.payout_ids:
            return self.payout_ids
        return [self.payout_id] if self.payout_id else []


class ScheduleResult(BaseModel):
    """Outcome for one payout in a scheduling batch"""

    payout_id: str
    success: bool
    payout: Optional[PayoutSchema] = None
    error: Optional[str] = None
    kind: Optional[str] = None


class ScheduleResponse(BaseModel):
    """Response for POST /v1/payouts/schedule"""

    success: bool
    scheduled_count: int
    error_count: int
    results: List[ScheduleResult]
    message: str


class SettleRequest(BaseModel):
    """Request body for POST /v1/payouts/{payout_id}/settle"""

    outcome: str = Field(..., description="paid | failed")
    payment_reference: Optional[str] = None
    failure_reason: Optional[str] = None


class RejectRequest(BaseModel):
    """Request body for POST /v1/payouts/{payout_id}/reject"""

    failure_reason: str = Field(..., min_length=1)


class PayoutResponse(BaseModel):
    success: bool
    payout: PayoutSchema
    message: str


class EventSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    transaction_id: uuid.UUID
    payout_id: Optional[uuid.UUID] = None
    event_type: str
    actor_id: str
    actor_name: Optional[str] = None
    event_metadata: Optional[Dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("event_metadata", "metadata"),
        serialization_alias="metadata",
    )
    visible_to_agent: bool
    created_at: Optional[datetime] = None


class EventsResponse(BaseModel):
    """Response for GET /v1/transactions/{transaction_id}/events"""

    transaction_id: str
    events: List[EventSchema]
