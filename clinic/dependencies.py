"""
依赖注入
服务所需的外部句柄（支付网关、事件总线、通知渠道）在启动时挂到 app.state，
路由通过这些 provider 取用；测试通过 dependency_overrides 替换
"""
from fastapi import BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from clinic_core.engine import EventBus
from clinic_core.notification import NotificationChannelRegistry
from clinic_core.payment import IPaymentGateway
from clinic.config import settings
from clinic.database import get_db
from clinic.services.availability_service import AvailabilityService
from clinic.services.booking_service import BookingService
from clinic.services.reconciliation_service import ReconciliationService
from clinic.services.user_service import UserService


def get_payment_gateway(request: Request) -> IPaymentGateway:
    return request.app.state.payment_gateway


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


def get_notification_registry(request: Request) -> NotificationChannelRegistry:
    return request.app.state.notification_registry


def get_booking_service(
    db: Session = Depends(get_db),
    gateway: IPaymentGateway = Depends(get_payment_gateway),
    event_bus: EventBus = Depends(get_event_bus),
) -> BookingService:
    return BookingService(db, gateway=gateway, event_bus=event_bus, currency=settings.CURRENCY)


def get_reconciliation_service(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    gateway: IPaymentGateway = Depends(get_payment_gateway),
    event_bus: EventBus = Depends(get_event_bus),
) -> ReconciliationService:
    """确认邮件等事件处理在响应返回后执行"""
    return ReconciliationService(
        db, gateway=gateway, event_bus=event_bus, currency=settings.CURRENCY,
        defer=background_tasks.add_task,
    )


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_user_service(
    db: Session = Depends(get_db),
    event_bus: EventBus = Depends(get_event_bus),
) -> UserService:
    return UserService(db, event_bus=event_bus,
                       verification_expire_hours=settings.VERIFICATION_EXPIRE_HOURS)
