"""Domain models - pure Python dataclasses representing business entities"""

import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"


class PayoutStatus(str, enum.Enum):
    READY = "ready"
    SCHEDULED = "scheduled"
    PAID = "paid"
    FAILED = "failed"


class EventType(str, enum.Enum):
    MANUAL_APPROVAL = "manual_approval"
    PAYOUT_CREATED = "payout_created"
    PAYOUT_SCHEDULED = "payout_scheduled"
    PAYOUT_PAID = "payout_paid"
    PAYOUT_FAILED = "payout_failed"


@dataclass
class Deductions:
    """Amounts subtracted from the agent's gross share"""

    franchise_fee: Decimal = Decimal("0")
    eo_fee: Decimal = Decimal("0")  # Errors and omissions
    transaction_fee: Decimal = Decimal("0")
    franchise_fee_percent: Decimal = Decimal("0")  # of GCI

    @property
    def fixed_total(self) -> Decimal:
        return self.franchise_fee + self.eo_fee + self.transaction_fee

    def total(self, gci: Decimal) -> Decimal:
        """All deductions for a deal; the percentage fee is taken on unrounded GCI"""
        return self.fixed_total + gci * self.franchise_fee_percent / Decimal("100")


@dataclass
class CommissionInputs:
    """Financial inputs to the commission calculator"""

    sale_price: Decimal
    commission_percent: Decimal
    agent_split_percent: Optional[Decimal]
    deductions: Deductions = field(default_factory=Deductions)


@dataclass
class CommissionResult:
    """Output of the commission calculator, rounded to cents"""

    gross_commission_income: Decimal
    agent_gross: Decimal
    total_deductions: Decimal
    agent_net_payout: Decimal
    clamped: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def agent_net_payout_cents(self) -> int:
        return int(self.agent_net_payout * 100)


@dataclass
class FinalTerms:
    """Validated deal terms submitted with a transaction approval"""

    final_broker_agent_name: Optional[str]
    property_address: Optional[str]
    final_sale_price: Decimal
    final_listing_commission_percent: Decimal
    final_buyer_commission_percent: Optional[Decimal]
    final_agent_split_percent: Optional[Decimal]
    final_co_broker_agent_name: Optional[str]
    final_co_brokerage_firm_name: Optional[str]


@dataclass
class ScheduleOutcome:
    """Per-payout result of a bulk scheduling request"""

    payout_id: str
    success: bool
    error: Optional[str] = None
    kind: Optional[str] = None
