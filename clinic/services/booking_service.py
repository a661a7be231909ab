"""
预订服务 - 本体操作层
管理 Booking 对象（聚合根）的创建与查询

创建流程在一个事务内完成：
校验 -> 日历规则 -> 服务端计价 -> 冲突查询 -> 写入时段占用 -> 创建支付意图
任一步失败整体回滚，不留下部分写入。
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_core.engine import Event, EventBus
from clinic_core.payment import IPaymentGateway, PaymentGatewayError
from clinic.errors import ConflictError, NotFoundError, StorageError, UpstreamError, ValidationError
from clinic.models.ontology import (
    Booking, BookingRoom, BookingDate, BookingSlot, BookingStatus, BookingType,
    PaymentStatus, Room, TimeSlot, User, utcnow,
)
from clinic.models.events import EventType
from clinic.domain import availability as rules
from clinic.domain.booking import (
    RoomSelection, parse_booking_type, parse_date_entry, parse_time_slot,
    selection_from_payload, validate_booking,
)
from clinic.domain.dates import is_past, is_weekend
from clinic.domain.membership import should_activate
from clinic.domain.pricing import PriceBreakdown, calculate_price
from clinic.services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)


@dataclass
class BookingCreation:
    """创建结果：预订 + 价格明细 + 前端确认支付用的 client secret"""
    booking: Booking
    price: PriceBreakdown
    client_secret: Optional[str] = None


class BookingService:
    """预订服务"""

    def __init__(
        self,
        db: Session,
        gateway: Optional[IPaymentGateway] = None,
        event_bus: Optional[EventBus] = None,
        currency: str = "usd",
    ):
        self.db = db
        self.gateway = gateway
        self.event_bus = event_bus
        self.currency = currency
        self.availability = AvailabilityService(db)

    # ============== 查询 ==============

    def get_booking(self, booking_id: int, user_id: Optional[int] = None) -> Booking:
        """获取单个预订；指定 user_id 时只返回该用户的预订"""
        query = self.db.query(Booking).filter(Booking.id == booking_id)
        if user_id is not None:
            query = query.filter(Booking.user_id == user_id)
        booking = query.first()
        if not booking:
            raise NotFoundError(f"预订 {booking_id} 不存在")
        return booking

    def get_booking_by_intent(self, payment_intent_id: str) -> Optional[Booking]:
        return self.db.query(Booking).filter(
            Booking.payment_intent_id == payment_intent_id
        ).first()

    def list_user_bookings(self, user_id: int,
                           status: Optional[BookingStatus] = None) -> List[Booking]:
        """用户的预订列表（最新的在前）"""
        query = self.db.query(Booking).filter(Booking.user_id == user_id)
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    # ============== 计价 ==============

    def quote(self, rooms: Sequence[Any], booking_type: Any,
              is_membership_active: bool) -> Optional[PriceBreakdown]:
        """
        报价：允许部分房间尚未选择日期（这些房间不计价）

        Returns:
            价格明细；所有房间都没有日期时返回 None
        """
        kind = parse_booking_type(booking_type)
        priced = []
        for item in rooms:
            if hasattr(item, "model_dump"):
                item = item.model_dump()
            slot = parse_time_slot(item.get("time_slot", TimeSlot.FULL.value))
            windows = tuple(parse_date_entry(entry, slot) for entry in item.get("dates") or [])
            priced.append(RoomSelection(room_id=item.get("room_id", 0), time_slot=slot, dates=windows))
        return calculate_price(priced, kind, is_membership_active)

    # ============== 冲突检查 ==============

    def find_conflict(self, selections: Sequence[RoomSelection],
                      exclude_booking_id: Optional[int] = None):
        """
        查找与其他有效预订冲突的第一个 (房间选择, 日期)

        Returns:
            (RoomSelection, date) 或 None
        """
        for selection in selections:
            booked = self.availability.booked_slots(
                selection.room_id, selection.date_strings, exclude_booking_id
            )
            for day in selection.date_strings:
                if not rules.is_date_available(booked, day, selection.time_slot):
                    return selection, day
        return None

    def ensure_available(self, selections: Sequence[RoomSelection],
                         exclude_booking_id: Optional[int] = None) -> None:
        conflict = self.find_conflict(selections, exclude_booking_id)
        if conflict:
            selection, day = conflict
            raise ConflictError(
                f"房间 {selection.label} 在 {day} 的 {selection.time_slot.value} 时段已被预订",
                room_id=selection.room_id,
                room_name=selection.name or None,
            )

    # ============== 创建 ==============

    def build_selections(self, rooms: Sequence[Any]) -> List[RoomSelection]:
        """校验载荷并用房间表中的名称补全选择"""
        selections = [selection_from_payload(item) for item in rooms]
        resolved = []
        for selection in selections:
            room = self.db.query(Room).filter(Room.id == selection.room_id).first()
            if not room or not room.is_active:
                raise NotFoundError(f"房间 {selection.room_id} 不存在")
            resolved.append(RoomSelection(
                room_id=selection.room_id,
                time_slot=selection.time_slot,
                dates=selection.dates,
                name=room.name,
            ))
        return resolved

    def _check_calendar(self, selections: Sequence[RoomSelection], today: date) -> None:
        """周末与过去日期不可预订"""
        for selection in selections:
            for day in selection.date_strings:
                value = date.fromisoformat(day)
                if is_weekend(value):
                    raise ValidationError(f"房间 {selection.label} 的 {day} 为周末，不可预订")
                if is_past(value, today):
                    raise ValidationError(f"房间 {selection.label} 的 {day} 已过去，不可预订")

    def create_booking(
        self,
        user: User,
        rooms: Sequence[Any],
        booking_type: Any = BookingType.DAILY,
        today: Optional[date] = None,
    ) -> BookingCreation:
        """
        创建预订并生成支付意图

        Raises:
            ValidationError: 载荷不合法或日期不可选
            NotFoundError: 房间不存在
            ConflictError: 房间时段已被占用
            UpstreamError: 支付处理方创建意图失败
            StorageError: 意外的存储失败
        """
        if self.gateway is None:
            raise UpstreamError("支付网关未配置", service="payment")

        selections = self.build_selections(rooms)
        kind = validate_booking(selections, booking_type)
        self._check_calendar(selections, today or date.today())

        price = calculate_price(selections, kind, user.is_membership_active)
        if price is None or price.total < 0:
            raise ValidationError("预订金额无效")
        total = price.rounded().total

        self.ensure_available(selections)

        booking = Booking(
            user_id=user.id,
            booking_type=kind,
            total_amount=total,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            is_membership_active=bool(user.is_membership_active),
        )
        for position, selection in enumerate(selections):
            booking.rooms.append(BookingRoom(
                position=position,
                room_id=selection.room_id,
                name=selection.name,
                time_slot=selection.time_slot,
                dates=[
                    BookingDate(position=i, date=w.date, start_time=w.start_time, end_time=w.end_time)
                    for i, w in enumerate(selection.dates)
                ],
            ))

        try:
            self.db.add(booking)
            self.db.flush()
            self._claim_slots(booking, selections)

            try:
                intent = self.gateway.create_intent(
                    price.to_minor_units(),
                    self.currency,
                    metadata={
                        "bookingId": str(booking.id),
                        "userId": str(user.id),
                        "shouldActivateMembership": str(
                            should_activate(True, user.is_membership_active)
                        ).lower(),
                    },
                )
            except PaymentGatewayError as e:
                raise UpstreamError(f"创建支付意图失败: {e}", service="payment")

            booking.payment_intent_id = intent.id
            self.db.commit()
        except (ConflictError, UpstreamError):
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to persist booking for user {user.id}: {e}", exc_info=True)
            raise StorageError("意外的存储失败")

        self.db.refresh(booking)
        logger.info(
            f"Booking {booking.id} created for user {user.id}: "
            f"{len(selections)} room(s), total {total}, intent {booking.payment_intent_id}"
        )
        self._publish(EventType.BOOKING_CREATED, {
            "booking_id": booking.id,
            "user_id": user.id,
            "total_amount": str(total),
            "payment_intent_id": booking.payment_intent_id,
        })
        return BookingCreation(booking=booking, price=price.rounded(), client_secret=intent.client_secret)

    def _claim_slots(self, booking: Booking, selections: Sequence[RoomSelection]) -> None:
        """
        按房间逐个写入时段占用

        冲突查询与写入之间若有并发写入者抢先，唯一约束在 flush 时拒绝本次写入。
        """
        for selection in selections:
            for room_id, day, half in selection.claims():
                self.db.add(BookingSlot(booking_id=booking.id, room_id=room_id, date=day, half=half))
            try:
                self.db.flush()
            except IntegrityError:
                logger.warning(
                    f"Slot claim rejected for room {selection.room_id} "
                    f"(concurrent booking on {selection.date_strings})"
                )
                raise ConflictError(
                    f"房间 {selection.label} 的所选时段已被其他预订占用",
                    room_id=selection.room_id,
                    room_name=selection.name or None,
                )

    def _publish(self, event_type: EventType, data: dict) -> None:
        if self.event_bus is None:
            return
        self.event_bus.publish(Event(
            event_type=event_type.value,
            timestamp=utcnow(),
            data=data,
            source="booking_service",
        ))
