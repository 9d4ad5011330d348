"""
订单金额计算
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping, Optional

from .delivery import ZERO, PricingTemplate, preview_delivery_fee, to_decimal


def order_total(subtotal: Decimal, discount: Decimal, delivery_fee: Decimal) -> Decimal:
    """总额 = 小计 - 折扣 + 运费（不截断负数）"""
    return subtotal - discount + delivery_fee


@dataclass(frozen=True)
class DraftLine:
    """草稿中的一行"""
    product_id: int
    quantity: int


@dataclass
class OrderPreview:
    """草稿预览结果（仅供参考，提交时由服务端重新计算）"""
    subtotal: Decimal = ZERO
    delivery_fee: Decimal = ZERO
    total_amount: Decimal = ZERO
    items_total: Dict[int, Decimal] = field(default_factory=dict)


def preview_order(
    lines: Iterable[DraftLine],
    prices: Mapping[int, Any],
    template: Optional[PricingTemplate] = None,
    total_weight: Any = None,
    discount: Any = 0,
) -> OrderPreview:
    """根据本地缓存的价格计算草稿金额

    - 价格表中没有的商品直接跳过
    - 运费按 preview_delivery_fee 计算，不会抛错
    - 总额不低于 0
    """
    preview = OrderPreview()
    subtotal = Decimal("0")

    for line in lines:
        if line.product_id not in prices:
            continue
        line_total = to_decimal(prices[line.product_id], "price") * line.quantity
        preview.items_total[line.product_id] = (
            preview.items_total.get(line.product_id, Decimal("0")) + line_total
        )
        subtotal += line_total

    preview.subtotal = subtotal
    preview.delivery_fee = preview_delivery_fee(template, total_weight)
    total = order_total(subtotal, to_decimal(discount or 0, "discount"), preview.delivery_fee)
    preview.total_amount = max(ZERO, total)
    return preview
