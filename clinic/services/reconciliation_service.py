"""
支付对账服务

把支付处理方报告的结果应用到预订上。两条入口：
- verify_payment: 从处理方拉取支付意图当前状态
- confirm_booking: 调用方直接报告结果（可附带房间数据）
二者都构造 PaymentNotification 并调用同一个 reconcile_payment，
相同事件序列得到相同终态。

幂等：状态转换使用条件更新（WHERE status = pending），
受影响行数表示本次调用是否执行了转换；只有执行转换的调用发送确认邮件。
先到达的终态生效：
- 重复成功 / 重复失败：无操作
- 已确认后收到失败：忽略并记录警告
- 已失败后收到成功：拒绝（ConflictError），需人工处理
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Optional, Sequence

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_core.engine import Event, EventBus
from clinic_core.payment import IPaymentGateway, PaymentError, PaymentGatewayError, PaymentIntentInfo
from clinic.errors import ClinicError, ConflictError, NotFoundError, StorageError, UpstreamError, ValidationError
from clinic.models.ontology import (
    Booking, BookingSlot, BookingStatus, BookingSummary, PaymentStatus, TimeSlot, User, utcnow,
)
from clinic.models.events import (
    EventType, BookingConfirmedData, BookingFailedData, MembershipActivatedData,
)
from clinic.domain.booking import (
    BOOKING_STATE_MACHINE, booking_claims, selection_from_payload, stored_claims,
)
from clinic.domain.dates import normalize_date
from clinic.domain.membership import should_activate

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_MESSAGE = "Payment was not successful"
SUCCEEDED = "succeeded"


@dataclass
class PaymentNotification:
    """
    支付结果通知

    Attributes:
        payment_intent_id: 支付意图ID（关联预订的幂等键）
        reported_status: 处理方报告的状态，succeeded 以外均视为失败
        amount: 金额（最小货币单位）
        currency: 货币代码
        payment_method_type: 支付方式
        error: 失败详情
        rooms: 确认入口附带的房间数据（必须与已存预订一致）
    """
    payment_intent_id: str
    reported_status: str
    amount: Optional[int] = None
    currency: Optional[str] = None
    payment_method_type: Optional[str] = None
    error: Optional[PaymentError] = None
    rooms: Optional[Sequence[Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.reported_status == SUCCEEDED

    @classmethod
    def from_intent(cls, intent: PaymentIntentInfo) -> "PaymentNotification":
        return cls(
            payment_intent_id=intent.id,
            reported_status=intent.status,
            amount=intent.amount,
            currency=intent.currency,
            payment_method_type=intent.payment_method_types[0] if intent.payment_method_types else None,
            error=intent.last_payment_error,
        )


@dataclass
class ReconciliationResult:
    """对账结果"""
    booking: Booking
    user: User
    transitioned: bool
    membership_activated: bool = False

    @property
    def message(self) -> str:
        status = BookingStatus(self.booking.status)
        if status == BookingStatus.CONFIRMED:
            return "支付成功，预订已确认" if self.transitioned else "预订已确认"
        if status == BookingStatus.FAILED:
            return "支付失败" if self.transitioned else "预订已标记为支付失败"
        return f"预订状态: {status.value}"


class ReconciliationService:
    """支付对账服务"""

    def __init__(
        self,
        db: Session,
        gateway: Optional[IPaymentGateway] = None,
        event_bus: Optional[EventBus] = None,
        currency: str = "usd",
        defer: Optional[Callable[..., Any]] = None,
    ):
        """
        Args:
            defer: 延后执行器（如 BackgroundTasks.add_task），事件在响应返回后发布；
                为空时提交后立即同步发布
        """
        self.db = db
        self.gateway = gateway
        self.event_bus = event_bus
        self.currency = currency.lower()
        self.defer = defer

    # ============== 入口 ==============

    def verify_payment(self, payment_intent_id: str,
                       user_id: Optional[int] = None) -> ReconciliationResult:
        """
        支付校验入口：从处理方获取支付意图后对账

        Raises:
            UpstreamError: 处理方获取失败（调用方可重试）
        """
        if self.gateway is None:
            raise UpstreamError("支付网关未配置", service="payment")
        try:
            intent = self.gateway.retrieve_intent(payment_intent_id)
        except PaymentGatewayError as e:
            logger.error(f"Failed to retrieve payment intent {payment_intent_id}: {e}")
            raise UpstreamError(f"获取支付意图失败: {e}", service="payment")

        booking = self._find_booking(intent.id, user_id)
        meta_booking_id = (intent.metadata or {}).get("bookingId")
        if meta_booking_id and meta_booking_id != str(booking.id):
            logger.warning(
                f"Intent {intent.id} metadata bookingId={meta_booking_id} "
                f"does not match booking {booking.id}"
            )
        return self.reconcile_payment(PaymentNotification.from_intent(intent))

    def confirm_booking(
        self,
        payment_intent_id: str,
        payment_status: str,
        amount: Optional[int] = None,
        currency: Optional[str] = None,
        payment_method_type: Optional[str] = None,
        error: Optional[PaymentError] = None,
        rooms: Optional[Sequence[Any]] = None,
        user_id: Optional[int] = None,
    ) -> ReconciliationResult:
        """预订确认入口：调用方报告支付结果"""
        self._find_booking(payment_intent_id, user_id)
        return self.reconcile_payment(PaymentNotification(
            payment_intent_id=payment_intent_id,
            reported_status=payment_status,
            amount=amount,
            currency=currency,
            payment_method_type=payment_method_type,
            error=error,
            rooms=rooms,
        ))

    # ============== 对账 ==============

    def reconcile_payment(self, notification: PaymentNotification) -> ReconciliationResult:
        """
        应用支付结果

        同一次对账的全部写入在一个事务内完成。

        Raises:
            NotFoundError: 预订不存在
            ValidationError: 载荷不合法（不做任何写入）
            ConflictError: 预订已处于不可确认的终态
            StorageError: 意外的存储失败
        """
        booking = self._find_booking(notification.payment_intent_id)
        self._check_currency(notification)
        if notification.rooms is not None:
            self._check_rooms(booking, notification.rooms)

        user = self.db.query(User).filter(User.id == booking.user_id).first()
        if not user:
            raise NotFoundError(f"用户 {booking.user_id} 不存在")

        activated = False
        try:
            self._normalize_dates(booking)
            if notification.succeeded:
                transitioned = self._apply_success(booking, notification)
                activated = self._activate_membership(user)
            else:
                transitioned = self._apply_failure(booking, notification)
            self.db.commit()
        except ClinicError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Reconciliation of {notification.payment_intent_id} failed: {e}", exc_info=True)
            raise StorageError("意外的存储失败")

        self.db.refresh(booking)
        self.db.refresh(user)
        result = ReconciliationResult(
            booking=booking, user=user, transitioned=transitioned, membership_activated=activated
        )
        self._dispatch(result)
        return result

    def _find_booking(self, payment_intent_id: str, user_id: Optional[int] = None) -> Booking:
        query = self.db.query(Booking).filter(Booking.payment_intent_id == payment_intent_id)
        if user_id is not None:
            query = query.filter(Booking.user_id == user_id)
        booking = query.first()
        if not booking:
            raise NotFoundError(f"支付意图 {payment_intent_id} 对应的预订不存在")
        return booking

    def _check_currency(self, notification: PaymentNotification) -> None:
        if notification.currency and notification.currency.lower() != self.currency:
            raise ValidationError(f"不支持的币种: {notification.currency}")

    def _check_rooms(self, booking: Booking, rooms: Sequence[Any]) -> None:
        """确认入口附带的房间数据须与已存预订描述同一组时段占用"""
        selections = [selection_from_payload(item) for item in rooms]
        reported = sorted(booking_claims(selections))
        if reported != sorted(stored_claims(booking)):
            raise ValidationError(f"房间数据与预订 {booking.id} 不一致")

    def _normalize_dates(self, booking: Booking) -> None:
        """已存日期重新规范化为 YYYY-MM-DD；无法解析时整个对账失败"""
        for room in booking.rooms:
            for entry in room.dates:
                normalized = normalize_date(entry.date)
                if normalized != entry.date:
                    entry.date = normalized

    def _payment_values(self, notification: PaymentNotification, now) -> dict:
        values = {"payment_updated_at": now, "updated_at": now}
        if notification.amount is not None:
            values["payment_amount"] = Decimal(notification.amount) / 100
        if notification.currency:
            values["payment_currency"] = notification.currency.lower()
        if notification.payment_method_type:
            values["payment_method_type"] = notification.payment_method_type
        return values

    def _apply_success(self, booking: Booking, notification: PaymentNotification) -> bool:
        current = BookingStatus(booking.status)
        if current == BookingStatus.CONFIRMED:
            logger.info(f"Booking {booking.id} already confirmed, duplicate success ignored")
            return False
        if not BOOKING_STATE_MACHINE.can_fire(current.value, "succeed"):
            raise ConflictError(f"预订 {booking.id} 处于 {current.value} 状态，无法确认支付")

        if notification.amount is not None:
            expected = int(Decimal(booking.total_amount) * 100)
            if notification.amount != expected:
                logger.warning(
                    f"Booking {booking.id} paid amount {notification.amount} "
                    f"differs from expected {expected}"
                )

        now = utcnow()
        values = self._payment_values(notification, now)
        values.update(
            status=BookingStatus.CONFIRMED,
            payment_status=PaymentStatus.SUCCEEDED,
            payment_confirmed_at=now,
            payment_error_message=None,
            payment_error_code=None,
            payment_decline_code=None,
            is_membership_active=True,
        )
        # 调用方未报告金额时，记录预订时计算的价格
        values.setdefault("payment_amount", booking.total_amount)
        values.setdefault("payment_currency", self.currency)
        transitioned = self._transition(booking, values)
        if transitioned:
            self._upsert_summary(booking, BookingStatus.CONFIRMED)
            logger.info(f"Booking {booking.id} confirmed (intent {booking.payment_intent_id})")
            return True

        # 并发调用抢先完成了转换
        self.db.refresh(booking)
        if BookingStatus(booking.status) != BookingStatus.CONFIRMED:
            raise ConflictError(f"预订 {booking.id} 处于 {booking.status.value} 状态，无法确认支付")
        return False

    def _apply_failure(self, booking: Booking, notification: PaymentNotification) -> bool:
        current = BookingStatus(booking.status)
        if current == BookingStatus.FAILED:
            logger.info(f"Booking {booking.id} already failed, duplicate failure ignored")
            return False
        if not BOOKING_STATE_MACHINE.can_fire(current.value, "fail"):
            logger.warning(
                f"Failure notification for booking {booking.id} in state {current.value} ignored"
            )
            return False

        error = notification.error or PaymentError()
        values = self._payment_values(notification, utcnow())
        values.update(
            status=BookingStatus.FAILED,
            payment_status=PaymentStatus.FAILED,
            payment_error_message=error.message or DEFAULT_FAILURE_MESSAGE,
            payment_error_code=error.code,
            payment_decline_code=error.decline_code,
        )
        transitioned = self._transition(booking, values)
        if transitioned:
            self.db.execute(delete(BookingSlot).where(BookingSlot.booking_id == booking.id))
            self._upsert_summary(booking, BookingStatus.FAILED)
            logger.info(
                f"Booking {booking.id} failed (intent {booking.payment_intent_id}): "
                f"{values['payment_error_message']}"
            )
        return transitioned

    def _transition(self, booking: Booking, values: dict) -> bool:
        """条件更新 pending -> 终态；返回本次调用是否执行了转换"""
        result = self.db.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == BookingStatus.PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _activate_membership(self, user: User) -> bool:
        """会员标志只从 False 变为 True 一次"""
        if not should_activate(True, user.is_membership_active):
            return False
        result = self.db.execute(
            update(User)
            .where(User.id == user.id, User.is_membership_active.is_(False))
            .values(is_membership_active=True, membership_activated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        activated = result.rowcount == 1
        if activated:
            logger.info(f"Membership activated for user {user.id}")
        return activated

    def _upsert_summary(self, booking: Booking, status: BookingStatus) -> None:
        summary = self.db.query(BookingSummary).filter(
            BookingSummary.booking_id == booking.id
        ).first()
        if summary is None:
            self.db.add(BookingSummary(
                booking_id=booking.id,
                user_id=booking.user_id,
                total_amount=booking.total_amount,
                status=status.value,
            ))
        else:
            summary.status = status.value
            summary.total_amount = booking.total_amount
            summary.updated_at = utcnow()

    # ============== 事件 ==============

    def _dispatch(self, result: ReconciliationResult) -> None:
        """提交后发布事件；确认邮件由订阅者尽力发送"""
        if self.event_bus is None or not (result.transitioned or result.membership_activated):
            return
        booking, user = result.booking, result.user
        status = BookingStatus(booking.status)

        if result.transitioned and status == BookingStatus.CONFIRMED:
            self._publish(EventType.BOOKING_CONFIRMED, BookingConfirmedData(
                booking_id=booking.id,
                user_id=user.id,
                customer_name=user.full_name,
                email=user.email,
                email_notifications=bool(user.email_notifications),
                booking_type=booking.booking_type.value,
                total_amount=str(booking.total_amount),
                rooms=[
                    {
                        "name": room.name,
                        "time_slot": TimeSlot(room.time_slot).value,
                        "dates": [
                            {"date": d.date, "start_time": d.start_time, "end_time": d.end_time}
                            for d in room.dates
                        ],
                    }
                    for room in booking.rooms
                ],
            ).to_dict())
        elif result.transitioned and status == BookingStatus.FAILED:
            self._publish(EventType.BOOKING_FAILED, BookingFailedData(
                booking_id=booking.id,
                user_id=user.id,
                message=booking.payment_error_message or DEFAULT_FAILURE_MESSAGE,
                code=booking.payment_error_code,
                decline_code=booking.payment_decline_code,
            ).to_dict())

        if result.membership_activated:
            self._publish(EventType.MEMBERSHIP_ACTIVATED, MembershipActivatedData(
                user_id=user.id,
                booking_id=booking.id,
                activated_at=user.membership_activated_at,
            ).to_dict())

    def _publish(self, event_type: EventType, data: dict) -> None:
        event = Event(
            event_type=event_type.value,
            timestamp=utcnow(),
            data=data,
            source="reconciliation_service",
        )
        # 载荷已在请求内构造完毕，延后执行不再访问数据库会话
        if self.defer is not None:
            self.defer(self.event_bus.publish, event)
        else:
            self.event_bus.publish(event)
