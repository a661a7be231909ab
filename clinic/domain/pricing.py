"""
定价计算

纯函数：房间选择 + 预订类型 + 会员标志 -> 价格明细
全程 Decimal 累加，只在展示时四舍五入到分
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Sequence, Protocol

from clinic.models.ontology import BookingType, TimeSlot

FULL_DAY_PRICE = Decimal("300")
HALF_DAY_PRICE = Decimal("160")
MONTHLY_FULL_DAY_PRICE = Decimal("2000")
MONTHLY_HALF_DAY_PRICE = Decimal("1200")

TAX_RATE = Decimal("0.035")
SECURITY_DEPOSIT = Decimal("250")

CENT = Decimal("0.01")

# 单价表：按天为每天价格，按月为每个房间每月价格
PRICING = {
    BookingType.DAILY: {
        TimeSlot.FULL: FULL_DAY_PRICE,
        TimeSlot.MORNING: HALF_DAY_PRICE,
        TimeSlot.EVENING: HALF_DAY_PRICE,
    },
    BookingType.MONTHLY: {
        TimeSlot.FULL: MONTHLY_FULL_DAY_PRICE,
        TimeSlot.MORNING: MONTHLY_HALF_DAY_PRICE,
        TimeSlot.EVENING: MONTHLY_HALF_DAY_PRICE,
    },
}


class PricedRoom(Protocol):
    time_slot: TimeSlot
    dates: Sequence


@dataclass(frozen=True)
class PriceBreakdown:
    """价格明细（派生值，不单独持久化）"""
    subtotal: Decimal
    tax: Decimal
    security_deposit: Decimal
    total: Decimal

    def rounded(self) -> "PriceBreakdown":
        """展示用：各项四舍五入到分"""
        return PriceBreakdown(
            subtotal=_to_cents(self.subtotal),
            tax=_to_cents(self.tax),
            security_deposit=_to_cents(self.security_deposit),
            total=_to_cents(self.total),
        )

    def to_minor_units(self) -> int:
        """总价换算为最小货币单位（美分），供支付处理方使用"""
        return int((self.total * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def room_cost(time_slot: TimeSlot, date_count: int, booking_type: BookingType) -> Decimal:
    """单个房间的费用；按月预订与日期数量无关"""
    unit_price = PRICING[BookingType(booking_type)][TimeSlot(time_slot)]
    if booking_type == BookingType.DAILY:
        return unit_price * date_count
    return unit_price


def calculate_price(
    rooms: Iterable[PricedRoom],
    booking_type: BookingType,
    is_membership_active: bool,
) -> Optional[PriceBreakdown]:
    """
    计算价格明细

    没有日期的房间被跳过；所有房间都没有日期时返回 None。
    """
    subtotal = Decimal("0")
    priced = 0
    for room in rooms:
        date_count = len(room.dates or ())
        if date_count == 0:
            continue
        subtotal += room_cost(room.time_slot, date_count, booking_type)
        priced += 1

    if priced == 0:
        return None

    tax = subtotal * TAX_RATE
    security_deposit = Decimal("0") if is_membership_active else SECURITY_DEPOSIT
    return PriceBreakdown(
        subtotal=subtotal,
        tax=tax,
        security_deposit=security_deposit,
        total=subtotal + tax + security_deposit,
    )
