"""
定价计算（纯函数，无副作用）

下单服务、运费试算接口和订单草稿预览共用同一份公式。
"""
from .delivery import (
    PricingTemplate,
    calculate_delivery_fee,
    delivery_fee_formula,
    preview_delivery_fee,
)
from .totals import DraftLine, OrderPreview, order_total, preview_order

__all__ = [
    "PricingTemplate",
    "calculate_delivery_fee",
    "delivery_fee_formula",
    "preview_delivery_fee",
    "DraftLine",
    "OrderPreview",
    "order_total",
    "preview_order",
]
