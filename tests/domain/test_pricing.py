"""
定价计算单元测试
"""
import pytest
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from clinic.models.ontology import BookingType, TimeSlot
from clinic.domain.pricing import calculate_price, room_cost, PriceBreakdown


@dataclass
class _Room:
    time_slot: TimeSlot
    dates: List[str] = field(default_factory=list)


DATES = ["2030-06-03", "2030-06-04", "2030-06-05"]


class TestDailyPricing:

    def test_full_day_non_member(self):
        price = calculate_price([_Room(TimeSlot.FULL, DATES)], BookingType.DAILY, False)
        assert price.subtotal == Decimal("900")
        assert price.tax == Decimal("31.5")
        assert price.security_deposit == Decimal("250")
        assert price.total == Decimal("1181.5")
        assert price.rounded().total == Decimal("1181.50")

    def test_half_day_priced_per_date(self):
        price = calculate_price([_Room(TimeSlot.EVENING, DATES[:2])], BookingType.DAILY, True)
        assert price.subtotal == Decimal("320")

    def test_multiple_rooms_sum(self):
        rooms = [_Room(TimeSlot.FULL, DATES[:1]), _Room(TimeSlot.MORNING, DATES[:2])]
        price = calculate_price(rooms, BookingType.DAILY, True)
        assert price.subtotal == Decimal("620")
        assert price.total == Decimal("620") * Decimal("1.035")

    def test_tax_not_rounded_during_accumulation(self):
        price = calculate_price([_Room(TimeSlot.MORNING, DATES[:1])], BookingType.DAILY, True)
        assert price.tax == Decimal("5.600")
        assert price.to_minor_units() == 16560


class TestMonthlyPricing:

    def test_morning_member(self):
        price = calculate_price([_Room(TimeSlot.MORNING, DATES)], BookingType.MONTHLY, True)
        assert price.subtotal == Decimal("1200")
        assert price.tax == Decimal("42.000")
        assert price.security_deposit == Decimal("0")
        assert price.rounded().total == Decimal("1242.00")

    def test_monthly_independent_of_date_count(self):
        one = room_cost(TimeSlot.FULL, 1, BookingType.MONTHLY)
        thirty = room_cost(TimeSlot.FULL, 30, BookingType.MONTHLY)
        assert one == thirty == Decimal("2000")


class TestDepositRule:

    @pytest.mark.parametrize("booking_type", [BookingType.DAILY, BookingType.MONTHLY])
    def test_member_pays_no_deposit(self, booking_type):
        rooms = [_Room(TimeSlot.FULL, DATES)]
        member = calculate_price(rooms, booking_type, True)
        non_member = calculate_price(rooms, booking_type, False)
        assert member.security_deposit == 0
        assert non_member.security_deposit == Decimal("250")
        assert non_member.total - member.total == Decimal("250")


class TestEmptySelections:

    def test_no_rooms(self):
        assert calculate_price([], BookingType.DAILY, False) is None

    def test_rooms_without_dates_are_skipped(self):
        rooms = [_Room(TimeSlot.FULL, []), _Room(TimeSlot.FULL, DATES[:1])]
        price = calculate_price(rooms, BookingType.DAILY, True)
        assert price.subtotal == Decimal("300")

    def test_all_rooms_empty(self):
        assert calculate_price([_Room(TimeSlot.FULL, [])], BookingType.MONTHLY, False) is None


class TestPriceBreakdown:

    def test_rounded_half_up(self):
        breakdown = PriceBreakdown(
            subtotal=Decimal("10.005"), tax=Decimal("0"), security_deposit=Decimal("0"),
            total=Decimal("10.005"),
        )
        assert breakdown.rounded().total == Decimal("10.01")
        assert breakdown.to_minor_units() == 1001
