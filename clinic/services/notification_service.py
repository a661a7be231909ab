"""
通知事件处理器
订阅预订确认、用户注册等事件并发送邮件

邮件发送是尽力而为：失败只记录日志，不影响已提交的状态转换
"""
import logging
from typing import Optional

from clinic_core.engine import Event, EventBus
from clinic_core.notification import Notification, NotificationChannelRegistry
from clinic.models.events import EventType
from clinic.notification import templates

logger = logging.getLogger(__name__)

EMAIL = "email"


class BookingNotifier:
    """
    邮件通知处理器集合

    支持依赖注入以便于测试：
    - registry: 通知渠道注册表
    - app_url: 前端地址（用于拼接验证链接）
    """

    def __init__(self, registry: NotificationChannelRegistry, app_url: str = ""):
        self.registry = registry
        self.app_url = app_url.rstrip("/")
        self._registered_on: Optional[EventBus] = None

    def _send(self, recipient: str, subject: str, html: str) -> bool:
        sent = self.registry.send(EMAIL, Notification(recipient=recipient, subject=subject, body=html))
        if not sent:
            logger.warning(f"Email to {recipient} not delivered: {subject}")
        return sent

    def handle_booking_confirmed(self, event: Event) -> None:
        """
        处理预订确认事件：发送确认邮件

        触发条件：本次对账把预订转为 confirmed
        用户关闭邮件通知时跳过
        """
        data = event.data
        email = data.get("email")
        if not email:
            logger.warning(f"Booking confirmed event without email: {data.get('booking_id')}")
            return
        if not data.get("email_notifications", True):
            logger.info(f"User {data.get('user_id')} opted out of email, skip confirmation")
            return

        subject, html = templates.booking_confirmation_email(
            customer_name=data.get("customer_name", ""),
            booking_id=data.get("booking_id"),
            booking_type=data.get("booking_type", ""),
            total_amount=data.get("total_amount", ""),
            rooms=data.get("rooms", []),
        )
        if self._send(email, subject, html):
            logger.info(f"Confirmation email sent for booking {data.get('booking_id')}")

    def handle_user_registered(self, event: Event) -> None:
        """处理用户注册 / 重发验证码事件：发送验证邮件"""
        data = event.data
        email = data.get("email")
        if not email:
            return
        url = f"{self.app_url}/verify-email?token={data.get('verification_token', '')}"
        subject, html = templates.registration_email(
            first_name=data.get("first_name", ""),
            verification_url=url,
            verification_code=data.get("verification_code", ""),
        )
        self._send(email, subject, html)

    def handle_email_verified(self, event: Event) -> None:
        """处理邮箱验证成功事件"""
        data = event.data
        email = data.get("email")
        if not email:
            return
        subject, html = templates.verification_success_email(
            first_name=data.get("first_name", ""),
            login_url=f"{self.app_url}/login",
        )
        self._send(email, subject, html)

    def register_handlers(self, bus: EventBus) -> None:
        """注册所有处理器（同一总线重复调用无副作用）"""
        if self._registered_on is bus:
            return
        bus.subscribe(EventType.BOOKING_CONFIRMED.value, self.handle_booking_confirmed)
        bus.subscribe(EventType.USER_REGISTERED.value, self.handle_user_registered)
        bus.subscribe(EventType.EMAIL_VERIFIED.value, self.handle_email_verified)
        self._registered_on = bus
        logger.info("Notification handlers registered")


def register_notification_handlers(bus: EventBus, registry: NotificationChannelRegistry,
                                   app_url: str = "") -> BookingNotifier:
    """创建并注册邮件通知处理器"""
    notifier = BookingNotifier(registry, app_url)
    notifier.register_handlers(bus)
    return notifier
