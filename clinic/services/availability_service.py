"""
可用性服务 - 查询房间时段占用
每次调用都重新读取数据库，不缓存
"""
from datetime import date
from typing import Dict, List, Optional, Sequence, Set

from sqlalchemy.orm import Session

from clinic.errors import NotFoundError
from clinic.models.ontology import (
    Booking, BookingRoom, BookingDate, Room, TimeSlot, ACTIVE_BOOKING_STATUSES
)
from clinic.domain import availability as rules
from clinic.domain.availability import BookedSlots
from clinic.domain.dates import month_days, normalize_date


class AvailabilityService:
    """可用性服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_room(self, room_id: int) -> Room:
        room = self.db.query(Room).filter(Room.id == room_id).first()
        if not room:
            raise NotFoundError(f"房间 {room_id} 不存在")
        return room

    def booked_slots(
        self,
        room_id: int,
        dates: Optional[Sequence[str]] = None,
        exclude_booking_id: Optional[int] = None,
    ) -> BookedSlots:
        """
        房间在给定日期上被有效预订（pending/confirmed）占用的时段

        dates 为空时返回该房间全部占用。
        """
        query = self.db.query(BookingDate.date, BookingRoom.time_slot).join(
            BookingRoom, BookingDate.booking_room_id == BookingRoom.id
        ).join(
            Booking, BookingRoom.booking_id == Booking.id
        ).filter(
            BookingRoom.room_id == room_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
        if dates is not None:
            query = query.filter(BookingDate.date.in_(list(dates)))
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)

        booked: Dict[str, Set[TimeSlot]] = {}
        for day, slot in query.all():
            booked.setdefault(day, set()).add(TimeSlot(slot))
        return booked

    def is_slot_available(self, day, room_id: int, requested_slot: TimeSlot) -> bool:
        """房间在该日是否可预订请求时段（仅房间级规则）"""
        normalized = normalize_date(day)
        booked = self.booked_slots(room_id, [normalized])
        return rules.is_date_available(booked, normalized, TimeSlot(requested_slot))

    def check_availability(
        self,
        room_id: int,
        month: int,
        year: int,
        today: Optional[date] = None,
        time_slot: Optional[TimeSlot] = None,
    ) -> List[dict]:
        """
        月度日历：每天的已占用时段及状态

        指定 time_slot 时每天附带 available：该时段是否可预订（含日历规则）
        """
        days = month_days(year, month)
        self.get_room(room_id)
        today = today or date.today()

        booked = self.booked_slots(room_id, [d.isoformat() for d in days])

        result = []
        for day in days:
            slots = booked.get(day.isoformat(), set())
            entry = {
                "date": day,
                "time_slots": sorted(slots, key=lambda s: s.value),
                "status": rules.day_status(day, slots, today),
            }
            if time_slot is not None:
                entry["available"] = (
                    rules.is_calendar_selectable(day, today)
                    and not rules.is_blocked(TimeSlot(time_slot), slots)
                )
            result.append(entry)
        return result

    def change_time_slot(self, room_id: int, dates: Sequence, new_slot: TimeSlot):
        """
        切换时段：移除在新时段下冲突的日期

        Returns:
            (保留的日期, 被移除的日期)
        """
        self.get_room(room_id)
        normalized = [normalize_date(d) for d in dates]
        booked = self.booked_slots(room_id, normalized)
        return rules.change_time_slot(normalized, TimeSlot(new_slot), booked)

    def select_monthly_dates(
        self,
        room_id: int,
        time_slot: TimeSlot,
        start_date: date,
        today: Optional[date] = None,
    ) -> List[str]:
        """从 start_date 起选取 30 个可用工作日"""
        self.get_room(room_id)
        today = today or date.today()
        booked = self.booked_slots(room_id)
        return rules.select_monthly_dates(start_date, TimeSlot(time_slot), booked, today)
