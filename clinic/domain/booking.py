"""
预订聚合 - 构造校验与状态机

构造时逐个房间校验：
- 日期列表非空
- 日期按时间先后非递减排列（乱序直接拒绝，不自动排序）
- 日期为 YYYY-MM-DD，时间为 24 小时制 HH:MM

状态机：
    pending --succeed--> confirmed
    pending --fail-----> failed
    confirmed / failed 为终态
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from clinic_core.engine import StateMachine, StateMachineConfig, StateTransition
from clinic.errors import ValidationError
from clinic.models.ontology import BookingType, BookingStatus, TimeSlot
from clinic.domain.dates import normalize_date, normalize_time
from clinic.domain.availability import SLOT_HALVES

# 调用方只传日期时使用的默认时间窗口
DEFAULT_SLOT_HOURS: Dict[TimeSlot, Tuple[str, str]] = {
    TimeSlot.FULL: ("08:00", "18:00"),
    TimeSlot.MORNING: ("08:00", "13:00"),
    TimeSlot.EVENING: ("13:00", "18:00"),
}

# 一个时段占用记录：(room_id, date, half)
Claim = Tuple[int, str, str]


@dataclass(frozen=True)
class DateWindow:
    """单个日期及时间窗口"""
    date: str
    start_time: str
    end_time: str


@dataclass(frozen=True)
class RoomSelection:
    """房间选择：房间 + 时段 + 有序日期"""
    room_id: int
    time_slot: TimeSlot
    dates: Tuple[DateWindow, ...]
    name: str = ""

    @property
    def date_strings(self) -> List[str]:
        return [d.date for d in self.dates]

    @property
    def label(self) -> str:
        return self.name or str(self.room_id)

    def claims(self) -> List[Claim]:
        """该选择需要占用的所有 (房间, 日期, 半天)"""
        return [
            (self.room_id, d.date, half)
            for d in self.dates
            for half in SLOT_HALVES[self.time_slot]
        ]


def parse_time_slot(value: Any) -> TimeSlot:
    try:
        return TimeSlot(value)
    except ValueError:
        raise ValidationError(f"无效时段: {value}")


def parse_booking_type(value: Any) -> BookingType:
    try:
        return BookingType(value)
    except ValueError:
        raise ValidationError(f"无效预订类型: {value}")


def parse_date_entry(entry: Any, time_slot: TimeSlot) -> DateWindow:
    """
    解析一个日期条目

    支持裸日期（字符串 / date / datetime）或带 date、start_time、end_time 的字典；
    未给出时间时使用时段默认窗口。
    """
    if hasattr(entry, "model_dump"):
        entry = entry.model_dump()

    default_start, default_end = DEFAULT_SLOT_HOURS[time_slot]
    if isinstance(entry, dict):
        raw_date = entry.get("date")
        if raw_date is None:
            raise ValidationError("日期条目缺少 date")
        start_time = entry.get("start_time") or entry.get("startTime") or default_start
        end_time = entry.get("end_time") or entry.get("endTime") or default_end
    else:
        raw_date = entry
        start_time, end_time = default_start, default_end

    window = DateWindow(
        date=normalize_date(raw_date),
        start_time=normalize_time(start_time),
        end_time=normalize_time(end_time),
    )
    if window.start_time >= window.end_time:
        raise ValidationError(f"{window.date} 的开始时间必须早于结束时间")
    return window


def ensure_chronological(dates: Sequence[str], room_label: str) -> None:
    """日期必须非递减排列"""
    for previous, current in zip(dates, dates[1:]):
        if current < previous:
            raise ValidationError(f"房间 {room_label} 的日期必须按时间先后排列")


def build_room_selection(
    room_id: Any,
    time_slot: Any,
    dates: Sequence[Any],
    name: str = "",
) -> RoomSelection:
    """
    构造并校验一个房间选择

    Raises:
        ValidationError: 任一条目不合法（整个选择被拒绝）
    """
    if not isinstance(room_id, int) or isinstance(room_id, bool) or room_id <= 0:
        raise ValidationError(f"无效房间ID: {room_id!r}")
    slot = parse_time_slot(time_slot)
    label = name or str(room_id)

    if not dates:
        raise ValidationError(f"房间 {label} 至少需要选择一个日期")

    windows = tuple(parse_date_entry(entry, slot) for entry in dates)
    date_strings = [w.date for w in windows]
    ensure_chronological(date_strings, label)
    if len(set(date_strings)) != len(date_strings):
        raise ValidationError(f"房间 {label} 存在重复日期")

    return RoomSelection(room_id=room_id, time_slot=slot, dates=windows, name=name)


def selection_from_payload(item: Any) -> RoomSelection:
    """从请求载荷（pydantic 模型或字典）构造房间选择"""
    if hasattr(item, "model_dump"):
        item = item.model_dump()
    if not isinstance(item, dict):
        raise ValidationError("房间选择格式不正确")
    return build_room_selection(
        room_id=item.get("room_id", item.get("roomId")),
        time_slot=item.get("time_slot", item.get("timeSlot", TimeSlot.FULL.value)),
        dates=item.get("dates") or [],
        name=item.get("name") or "",
    )


def stored_claims(booking) -> List[Claim]:
    """已持久化预订的全部时段占用"""
    return [
        (room.room_id, d.date, half)
        for room in booking.rooms
        for d in room.dates
        for half in SLOT_HALVES[TimeSlot(room.time_slot)]
    ]


def validate_booking(rooms: Sequence[RoomSelection], booking_type: Any) -> BookingType:
    """
    校验整张预订

    同一预订内不同房间选择之间也不能占用同一 (房间, 日期, 半天)。
    """
    kind = parse_booking_type(booking_type)
    if not rooms:
        raise ValidationError("至少需要选择一个房间")

    seen = set()
    for room in rooms:
        for claim in room.claims():
            if claim in seen:
                raise ValidationError(f"房间 {room.label} 在 {claim[1]} 的时段重复选择")
            seen.add(claim)
    return kind


def booking_claims(rooms: Sequence[RoomSelection]) -> List[Claim]:
    return [claim for room in rooms for claim in room.claims()]


# ============== 状态机 ==============

BOOKING_STATE_MACHINE = StateMachine(
    StateMachineConfig(
        name="Booking",
        states=[s.value for s in BookingStatus],
        transitions=[
            StateTransition(BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value, "succeed"),
            StateTransition(BookingStatus.PENDING.value, BookingStatus.FAILED.value, "fail"),
        ],
        terminal_states=[
            BookingStatus.CONFIRMED.value,
            BookingStatus.FAILED.value,
            BookingStatus.CANCELLED.value,
        ],
    )
)
