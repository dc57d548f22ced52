"""
Unit Tests - Name Classification
"""
import pytest

from seller_analytics.profit.classification import (
    campaign_channel,
    fee_category,
    is_advertising_category,
    is_fba_fee,
    refund_component,
)


class TestClassification:

    @pytest.mark.parametrize("name,expected", [
        ("Sponsored Brands Video - Q4", "Sponsored Brands Video"),
        ("sponsored brands launch", "Sponsored Brands"),
        ("SD retargeting display", "Sponsored Display"),
        ("Sponsored Products Auto", "Sponsored Products"),
        ("Influencer push", "Other"),
        (None, "Other"),
    ])
    def test_campaign_channel(self, name, expected):
        assert campaign_channel(name) == expected

    @pytest.mark.parametrize("fee_type,expected", [
        ("FBAPerUnitFulfillmentFee", "FBA fulfillment fee"),
        ("Commission", "Referral fee"),
        ("Monthly Storage Fee", "Storage fee"),
        ("VariableClosingFee", "Closing fee"),
        ("DigitalServicesFee", "Digital services fee"),
        ("Subscription", "Other fees"),
    ])
    def test_fee_category(self, fee_type, expected):
        assert fee_category(fee_type) == expected

    def test_refund_component(self):
        assert refund_component("REFUND_COMMISSION") == "Refunded referral fee"
        assert refund_component("PromotionRebate") == "Refunded promotion"
        assert refund_component("ShippingCharge") == "Refunded shipping"
        assert refund_component(None) == "Refunded amount"

    def test_flags(self):
        assert is_fba_fee("FBA Weight Handling")
        assert not is_fba_fee("Referral Fee")
        assert is_advertising_category(" Advertising ")
        assert not is_advertising_category("Advertising agency retainer")
