"""
配送费与草稿金额计算
"""
from dataclasses import dataclass
from decimal import Decimal

import pytest

from of_core.pricing import (
    DraftLine, calculate_delivery_fee, delivery_fee_formula, order_total,
    preview_delivery_fee, preview_order,
)
from of_core.utils.errors import NotFoundError, ValidationError


@dataclass
class Template:
    first_kg_price: Decimal
    extra_kg_price: Decimal


STANDARD = Template(first_kg_price=Decimal("150"), extra_kg_price=Decimal("50"))


class TestDeliveryFee:
    """配送费公式"""

    def test_extra_weight_is_charged_per_kg(self):
        assert calculate_delivery_fee(STANDARD, Decimal("3.5")) == Decimal("275.00")

    @pytest.mark.parametrize("weight", ["0.8", "1", "0.001"])
    def test_first_kg_only_up_to_one_kg(self, weight):
        assert calculate_delivery_fee(STANDARD, Decimal(weight)) == Decimal("150.00")

    def test_rounds_half_up_to_cents(self):
        template = Template(first_kg_price=Decimal("10"), extra_kg_price=Decimal("0.15"))
        # 10 + 0.5 * 0.15 = 10.075
        assert calculate_delivery_fee(template, Decimal("1.5")) == Decimal("10.08")

    def test_float_weight_is_converted_through_str(self):
        assert calculate_delivery_fee(STANDARD, 1.1) == Decimal("155.00")

    def test_monotonic_in_weight(self):
        weights = [Decimal(w) / 10 for w in range(1, 80)]
        fees = [calculate_delivery_fee(STANDARD, w) for w in weights]
        assert fees == sorted(fees)

    def test_missing_template(self):
        with pytest.raises(NotFoundError) as exc:
            calculate_delivery_fee(None, Decimal("2"))
        assert exc.value.code == "DELIVERY_TEMPLATE_NOT_FOUND"

    @pytest.mark.parametrize("weight", ["0", "-1"])
    def test_non_positive_weight_rejected(self, weight):
        with pytest.raises(ValidationError) as exc:
            calculate_delivery_fee(STANDARD, Decimal(weight))
        assert exc.value.code == "INVALID_WEIGHT"

    def test_garbage_weight_rejected(self):
        with pytest.raises(ValidationError) as exc:
            calculate_delivery_fee(STANDARD, "heavy")
        assert exc.value.code == "INVALID_NUMBER"

    @pytest.mark.parametrize("weight", ["1e30", "10000000"])
    def test_weight_above_column_range_rejected(self, weight):
        with pytest.raises(ValidationError) as exc:
            calculate_delivery_fee(STANDARD, Decimal(weight))
        assert exc.value.code == "INVALID_WEIGHT"

    def test_fee_beyond_decimal_precision_rejected(self):
        # 重量在范围内，但乘以超大续重价后无法精确到分
        template = Template(first_kg_price=Decimal("150"), extra_kg_price=Decimal("1e25"))
        with pytest.raises(ValidationError) as exc:
            calculate_delivery_fee(template, Decimal("9999999.999"))
        assert exc.value.code == "INVALID_WEIGHT"

    def test_negative_template_price_rejected(self):
        with pytest.raises(ValidationError):
            delivery_fee_formula(Decimal("-1"), Decimal("50"), Decimal("2"))

    def test_preview_fee_degrades_to_zero(self):
        assert preview_delivery_fee(None, Decimal("2")) == Decimal("0")
        assert preview_delivery_fee(STANDARD, None) == Decimal("0")
        assert preview_delivery_fee(STANDARD, Decimal("0")) == Decimal("0")
        assert preview_delivery_fee(STANDARD, Decimal("-3")) == Decimal("0")
        assert preview_delivery_fee(STANDARD, Decimal("3.5")) == Decimal("275.00")


class TestOrderTotals:
    """订单总额与草稿预览"""

    def test_total_is_subtotal_minus_discount_plus_fee(self):
        assert order_total(Decimal("250"), Decimal("20"), Decimal("275")) == Decimal("505")

    def test_total_is_not_clamped(self):
        assert order_total(Decimal("10"), Decimal("30"), Decimal("0")) == Decimal("-20")

    def test_preview_matches_server_example(self):
        lines = [DraftLine(1, 2), DraftLine(2, 1)]
        prices = {1: Decimal("100"), 2: Decimal("50")}

        preview = preview_order(lines, prices, template=STANDARD, total_weight="3.5", discount="20")

        assert preview.subtotal == Decimal("250")
        assert preview.delivery_fee == Decimal("275.00")
        assert preview.total_amount == Decimal("505.00")
        assert preview.items_total == {1: Decimal("200"), 2: Decimal("50")}

    def test_preview_skips_unknown_products(self):
        preview = preview_order([DraftLine(1, 1), DraftLine(99, 4)], {1: "12.50"})
        assert preview.subtotal == Decimal("12.50")
        assert 99 not in preview.items_total

    def test_preview_accumulates_repeated_product(self):
        preview = preview_order([DraftLine(1, 1), DraftLine(1, 2)], {1: Decimal("10")})
        assert preview.items_total == {1: Decimal("30")}
        assert preview.subtotal == Decimal("30")

    def test_preview_clamps_total_at_zero(self):
        preview = preview_order([DraftLine(1, 1)], {1: Decimal("10")}, discount=Decimal("50"))
        assert preview.total_amount == Decimal("0")

    def test_preview_ignores_non_positive_weight(self):
        preview = preview_order([DraftLine(1, 1)], {1: Decimal("10")}, template=STANDARD, total_weight=0)
        assert preview.delivery_fee == Decimal("0")
        assert preview.total_amount == Decimal("10")
