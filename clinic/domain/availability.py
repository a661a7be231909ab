"""
可用性规则

请求时段 -> 会阻塞它的已有时段：
    full    <- morning / evening / full
    morning <- morning / full
    evening <- evening / full

周末与过去日期属于日历级规则，与房间占用无关，单独判断。
"""
from datetime import date, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Set, Tuple

from clinic.models.ontology import TimeSlot
from clinic.domain.dates import is_weekend, is_past

BLOCKING_SLOTS: Dict[TimeSlot, frozenset] = {
    TimeSlot.FULL: frozenset({TimeSlot.MORNING, TimeSlot.EVENING, TimeSlot.FULL}),
    TimeSlot.MORNING: frozenset({TimeSlot.MORNING, TimeSlot.FULL}),
    TimeSlot.EVENING: frozenset({TimeSlot.EVENING, TimeSlot.FULL}),
}

# 时段对应占用的半天
SLOT_HALVES: Dict[TimeSlot, Tuple[str, ...]] = {
    TimeSlot.FULL: ("morning", "evening"),
    TimeSlot.MORNING: ("morning",),
    TimeSlot.EVENING: ("evening",),
}

MONTHLY_BUSINESS_DAYS = 30
# 按月选日期时最多向后搜索的天数
MONTHLY_SEARCH_HORIZON_DAYS = 366

# 已占用时段索引：日期(YYYY-MM-DD) -> 该日已被有效预订占用的时段
BookedSlots = Dict[str, Set[TimeSlot]]


class DayStatus(str, Enum):
    """日历中某天的状态"""
    AVAILABLE = "available"
    PARTIALLY_BOOKED = "partially_booked"
    FULLY_BOOKED = "fully_booked"
    UNAVAILABLE = "unavailable"        # 周末或过去日期


def is_blocked(requested: TimeSlot, existing: Iterable[TimeSlot]) -> bool:
    """已有时段中是否存在阻塞请求时段的"""
    blocking = BLOCKING_SLOTS[TimeSlot(requested)]
    return any(TimeSlot(slot) in blocking for slot in existing)


def is_calendar_selectable(day: date, today: date) -> bool:
    """日历级规则：非周末、非过去日期"""
    return not is_weekend(day) and not is_past(day, today)


def is_date_available(booked: BookedSlots, day: str, requested: TimeSlot) -> bool:
    """房间级规则：该日是否没有阻塞请求时段的有效占用"""
    return not is_blocked(requested, booked.get(day, ()))


def change_time_slot(
    dates: List[str],
    new_slot: TimeSlot,
    booked: BookedSlots,
) -> Tuple[List[str], List[str]]:
    """
    切换房间时段后重新筛选已选日期

    Returns:
        (保留的日期, 因新时段冲突被移除的日期)，均保持原顺序
    """
    kept, dropped = [], []
    for day in dates:
        if is_date_available(booked, day, new_slot):
            kept.append(day)
        else:
            dropped.append(day)
    return kept, dropped


def select_monthly_dates(
    start: date,
    time_slot: TimeSlot,
    booked: BookedSlots,
    today: date,
    count: int = MONTHLY_BUSINESS_DAYS,
    horizon_days: int = MONTHLY_SEARCH_HORIZON_DAYS,
) -> List[str]:
    """
    按月预订：从 start 起选取 count 个工作日，跳过周末、过去日期及已被占用的日期

    搜索范围限制在 horizon_days 内，范围内凑不满时返回已找到的日期。
    """
    dates: List[str] = []
    current = start
    end = start + timedelta(days=horizon_days)
    while len(dates) < count and current < end:
        day = current.isoformat()
        if is_calendar_selectable(current, today) and is_date_available(booked, day, time_slot):
            dates.append(day)
        current += timedelta(days=1)
    return dates


def day_status(day: date, booked_slots: Set[TimeSlot], today: date) -> DayStatus:
    """日历展示状态"""
    if not is_calendar_selectable(day, today):
        return DayStatus.UNAVAILABLE
    halves = {half for slot in booked_slots for half in SLOT_HALVES[TimeSlot(slot)]}
    if not halves:
        return DayStatus.AVAILABLE
    if halves == {"morning", "evening"}:
        return DayStatus.FULLY_BOOKED
    return DayStatus.PARTIALLY_BOOKED
