"""
配送费计算

公式：首重价 + (总重量 - 1) * 续重价，重量不超过 1 公斤时只收首重价。
结果按分四舍五入（远离零方向）。
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional, Protocol

from of_core.utils.errors import NotFoundError, ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
ONE_KG = Decimal("1")
# 与 orders.total_weight 的 Numeric(10, 3) 一致
MAX_TOTAL_WEIGHT = Decimal("9999999.999")


class PricingTemplate(Protocol):
    first_kg_price: Any
    extra_kg_price: Any


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """float 先转字符串，避免二进制误差进入金额"""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError(
                code="INVALID_NUMBER",
                detail=f"Invalid {field}: {value}"
            )
    if not result.is_finite():
        raise ValidationError(
            code="INVALID_NUMBER",
            detail=f"Invalid {field}: {value}"
        )
    return result


def delivery_fee_formula(first_kg_price: Any, extra_kg_price: Any, total_weight: Any) -> Decimal:
    """计算配送费，调用方保证重量为正"""
    first_kg = to_decimal(first_kg_price, "first_kg_price")
    extra_kg = to_decimal(extra_kg_price, "extra_kg_price")
    weight = to_decimal(total_weight, "total_weight")

    if first_kg < 0 or extra_kg < 0:
        raise ValidationError(
            code="INVALID_TEMPLATE_PRICE",
            detail="Delivery template prices must be non-negative"
        )

    if weight > MAX_TOTAL_WEIGHT:
        raise ValidationError(
            code="INVALID_WEIGHT",
            detail=f"Weight cannot exceed {MAX_TOTAL_WEIGHT} kg, got: {weight}"
        )

    try:
        if weight <= ONE_KG:
            return first_kg.quantize(CENT, rounding=ROUND_HALF_UP)

        fee = first_kg + (weight - ONE_KG) * extra_kg
        return fee.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(
            code="INVALID_WEIGHT",
            detail=f"Delivery fee out of range for weight {weight}"
        )


def calculate_delivery_fee(template: Optional[PricingTemplate], total_weight: Any) -> Decimal:
    """权威计算（服务端）

    模板缺失 -> NotFoundError；重量 <= 0 -> ValidationError。
    """
    if template is None:
        raise NotFoundError(code="DELIVERY_TEMPLATE_NOT_FOUND", resource="Delivery template")

    weight = to_decimal(total_weight, "total_weight")
    if weight <= 0:
        raise ValidationError(
            code="INVALID_WEIGHT",
            detail="Weight must be greater than 0"
        )

    return delivery_fee_formula(template.first_kg_price, template.extra_kg_price, weight)


def preview_delivery_fee(template: Optional[PricingTemplate], total_weight: Any) -> Decimal:
    """预览计算：没有模板或重量不为正时运费为 0，不抛错"""
    if template is None or total_weight is None:
        return ZERO

    weight = to_decimal(total_weight, "total_weight")
    if weight <= 0:
        return ZERO

    return delivery_fee_formula(template.first_kg_price, template.extra_kg_price, weight)
