"""Commission calculator - core business logic for agent payouts"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Optional
from commission_gateway.domain.models import CommissionInputs, CommissionResult, Deductions, FinalTerms
from commission_gateway.domain.exceptions import ValidationError

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

# Storage scale: money is Numeric(14, 2), percents are Numeric(7, 4)
AMOUNT_PLACES = 2
PERCENT_PLACES = 4
MAX_AMOUNT = Decimal("999999999999.99")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _decimal_places(value: Decimal) -> int:
    exponent = value.normalize().as_tuple().exponent
    return -exponent if exponent < 0 else 0


def parse_amount(value: Any, field_name: str, places: int = AMOUNT_PLACES) -> Decimal:
    """
    Parse a currency amount arriving as a string or number.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary expansion.
    Values must fit the stored column exactly: at most `places` decimal places
    and no more than MAX_AMOUNT, so the persisted figure is the one computed on.

    Raises:
        ValidationError: On missing, non-numeric, non-finite, negative, too
            precise, or too large values
    """
    if _is_blank(value):
        raise ValidationError(f"{field_name} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be numeric")

    try:
        amount = Decimal(str(value).strip().replace(",", ""))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field_name} must be numeric, got {value!r}") from e

    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a finite number")
    if amount < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field_name} cannot exceed {MAX_AMOUNT}")
    if _decimal_places(amount) > places:
        raise ValidationError(f"{field_name} allows at most {places} decimal places")
    return amount


def parse_percent(value: Any, field_name: str) -> Decimal:
    """Parse a percentage and require it to fall within [0, 100]"""
    percent = parse_amount(value, field_name, places=PERCENT_PLACES)
    if percent > HUNDRED:
        raise ValidationError(f"{field_name} must be between 0 and 100")
    return percent


def parse_optional_percent(value: Any, field_name: str) -> Optional[Decimal]:
    if _is_blank(value):
        return None
    return parse_percent(value, field_name)


def _optional_text(value: Any) -> Optional[str]:
    if _is_blank(value):
        return None
    return str(value).strip()


def parse_final_terms(final_data: Dict[str, Any]) -> FinalTerms:
    """
    Validate the final deal terms submitted with an approval.

    Sale price and listing commission percent are required. The agent split
    may be omitted when the agent's plan supplies a default.
    """
    if not isinstance(final_data, dict):
        raise ValidationError("final_data must be an object")

    return FinalTerms(
        final_broker_agent_name=_optional_text(final_data.get("final_broker_agent_name")),
        property_address=_optional_text(final_data.get("property_address")),
        final_sale_price=parse_amount(final_data.get("final_sale_price"), "final_sale_price"),
        final_listing_commission_percent=parse_percent(
            final_data.get("final_listing_commission_percent"), "final_listing_commission_percent"
        ),
        final_buyer_commission_percent=parse_optional_percent(
            final_data.get("final_buyer_commission_percent"), "final_buyer_commission_percent"
        ),
        final_agent_split_percent=parse_optional_percent(
            final_data.get("final_agent_split_percent"), "final_agent_split_percent"
        ),
        final_co_broker_agent_name=_optional_text(final_data.get("final_co_broker_agent_name")),
        final_co_brokerage_firm_name=_optional_text(final_data.get("final_co_brokerage_firm_name")),
    )


def build_commission_inputs(
    terms: FinalTerms,
    default_split_percent: Optional[Decimal] = None,
    deductions: Deductions | None = None,
) -> CommissionInputs:
    """Combine approved terms with the agent's plan (default split and deductions)"""
    split = terms.final_agent_split_percent
    if split is None:
        split = default_split_percent

    return CommissionInputs(
        sale_price=terms.final_sale_price,
        commission_percent=terms.final_listing_commission_percent,
        agent_split_percent=split,
        deductions=deductions or Deductions(),
    )


def _validate_inputs(inputs: CommissionInputs) -> None:
    if inputs.sale_price is None or inputs.sale_price < 0:
        raise ValidationError("Sale price must be a non-negative amount")
    if inputs.sale_price > MAX_AMOUNT:
        raise ValidationError(f"Sale price cannot exceed {MAX_AMOUNT}")

    for name, percent in (
        ("commission_percent", inputs.commission_percent),
        ("agent_split_percent", inputs.agent_split_percent),
        ("franchise_fee_percent", inputs.deductions.franchise_fee_percent),
    ):
        if percent is None:
            raise ValidationError(f"{name} is required")
        if percent < 0 or percent > HUNDRED:
            raise ValidationError(f"{name} must be between 0 and 100")

    for name in ("franchise_fee", "eo_fee", "transaction_fee"):
        amount = getattr(inputs.deductions, name)
        if amount < 0:
            raise ValidationError(f"Deduction {name} cannot be negative")
        if amount > MAX_AMOUNT:
            raise ValidationError(f"Deduction {name} cannot exceed {MAX_AMOUNT}")


def _to_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_commission(inputs: CommissionInputs) -> CommissionResult:
    """
    Compute gross commission income and the agent's net payout.

    Formula:
    - GCI = sale_price * commission_percent / 100
    - agent_gross = GCI * agent_split_percent / 100
    - deductions = franchise_fee + eo_fee + transaction_fee + GCI * franchise_fee_percent / 100
    - agent_net = agent_gross - deductions

    All arithmetic is exact Decimal; rounding (half-up, to cents) happens only
    on the returned figures. Deductions larger than the agent's gross clamp the
    payout to zero and add a NegativePayout warning instead of failing.

    Example:
        500,000 at 3% with a 75% split and 5,100 of deductions
        GCI 15,000.00 -> agent gross 11,250.00 -> net 6,150.00

    Raises:
        ValidationError: On negative or oversized amounts, out-of-range or missing percents
    """
    _validate_inputs(inputs)

    gci = inputs.sale_price * inputs.commission_percent / HUNDRED
    agent_gross = gci * inputs.agent_split_percent / HUNDRED
    total_deductions = inputs.deductions.total(gci)
    net = agent_gross - total_deductions

    clamped = False
    warnings = []
    if net < 0:
        clamped = True
        warnings.append(
            f"NegativePayout: deductions {_to_cents(total_deductions)} exceed agent gross "
            f"{_to_cents(agent_gross)}; payout clamped to 0.00"
        )
        net = Decimal("0")

    return CommissionResult(
        gross_commission_income=_to_cents(gci),
        agent_gross=_to_cents(agent_gross),
        total_deductions=_to_cents(total_deductions),
        agent_net_payout=_to_cents(net),
        clamped=clamped,
        warnings=warnings,
    )
