"""
Name-based classification of advertising campaigns, fees and refunds.

Matching is case-insensitive substring matching on free-text names. Rules
are checked in order; the first match wins.
"""

from typing import Optional, Sequence, Tuple

# (label, substrings) checked in order; video before the broader brand rule
CAMPAIGN_CHANNELS: Sequence[Tuple[str, Tuple[str, ...]]] = (
    ("Sponsored Brands Video", ("sponsored brands video", "video")),
    ("Sponsored Brands", ("sponsored brands", "brand")),
    ("Sponsored Display", ("sponsored display", "display")),
    ("Sponsored Products", ("sponsored products", "product")),
)
OTHER_CHANNEL = "Other"

FEE_CATEGORIES: Sequence[Tuple[str, Tuple[str, ...]]] = (
    ("FBA fulfillment fee", ("fba", "fulfillment", "fulfilment")),
    ("Referral fee", ("referral", "commission")),
    ("Storage fee", ("storage",)),
    ("Closing fee", ("closing",)),
    ("Digital services fee", ("digital",)),
)
OTHER_FEES = "Other fees"

REFUNDED_REFERRAL_FEE = "Refunded referral fee"
REFUNDED_PROMOTION = "Refunded promotion"
REFUNDED_SHIPPING = "Refunded shipping"
REFUNDED_AMOUNT = "Refunded amount"

REFUND_COMPONENTS: Sequence[Tuple[str, Tuple[str, ...]]] = (
    (REFUNDED_REFERRAL_FEE, ("referral", "commission")),
    (REFUNDED_PROMOTION, ("promotion", "promo", "coupon", "discount")),
    (REFUNDED_SHIPPING, ("shipping",)),
)


def _match(name: Optional[str], rules: Sequence[Tuple[str, Tuple[str, ...]]], default: str) -> str:
    text = (name or "").lower()
    for label, needles in rules:
        if any(needle in text for needle in needles):
            return label
    return default


def campaign_channel(campaign_name: Optional[str]) -> str:
    return _match(campaign_name, CAMPAIGN_CHANNELS, OTHER_CHANNEL)


def fee_category(fee_type: Optional[str]) -> str:
    return _match(fee_type, FEE_CATEGORIES, OTHER_FEES)


def refund_component(reason_code: Optional[str]) -> str:
    """Refund reason code -> P&L refund cost component"""
    return _match(reason_code, REFUND_COMPONENTS, REFUNDED_AMOUNT)


def is_fba_fee(fee_type: Optional[str]) -> bool:
    return "fba" in (fee_type or "").lower()


def is_advertising_category(category: Optional[str]) -> bool:
    return (category or "").strip().lower() == "advertising"
