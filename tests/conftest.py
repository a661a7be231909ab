"""
Pytest 配置和共享 fixtures
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")

import pytest
from datetime import date, timedelta
from typing import Dict, List, Optional
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from clinic_core.engine import EventBus
from clinic_core.notification import INotificationChannel, NotificationChannelRegistry
from clinic_core.payment import IPaymentGateway, PaymentError, PaymentGatewayError, PaymentIntentInfo
from clinic.database import Base, get_db
from clinic.dependencies import get_payment_gateway, get_event_bus, get_notification_registry
from clinic.init_data import seed_rooms
from clinic.models.ontology import Room, User
from clinic.security.auth import get_password_hash, create_access_token
from clinic.services.notification_service import register_notification_handlers
from clinic.main import app


# ============== Fakes ==============

class FakePaymentGateway(IPaymentGateway):
    """内存支付网关：记录创建的意图，测试可设置结果"""

    def __init__(self):
        self.intents: Dict[str, PaymentIntentInfo] = {}
        self.fail_create = False
        self.fail_retrieve = False
        self._counter = 0

    def create_intent(self, amount, currency, metadata=None):
        if self.fail_create:
            raise PaymentGatewayError("processor unavailable")
        self._counter += 1
        intent_id = f"pi_test_{self._counter}"
        intent = PaymentIntentInfo(
            id=intent_id,
            status="requires_payment_method",
            amount=amount,
            currency=currency,
            payment_method_types=["card"],
            metadata=dict(metadata or {}),
            client_secret=f"{intent_id}_secret_abc",
        )
        self.intents[intent_id] = intent
        return intent

    def retrieve_intent(self, intent_id):
        if self.fail_retrieve:
            raise PaymentGatewayError("processor timeout")
        if intent_id not in self.intents:
            raise PaymentGatewayError(f"No such payment_intent: {intent_id}")
        return self.intents[intent_id]

    def settle(self, intent_id: str, status: str = "succeeded",
               error: Optional[PaymentError] = None) -> PaymentIntentInfo:
        intent = self.intents[intent_id]
        intent.status = status
        intent.last_payment_error = error
        return intent


class FakeEmailChannel(INotificationChannel):
    """记录发送的邮件"""

    channel_type = "email"

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.sent: List[dict] = []

    def send(self, notification):
        if not self.succeed:
            return False
        self.sent.append({
            "recipient": notification.recipient,
            "subject": notification.subject,
            "content": notification.body,
        })
        return True


# ============== 数据库 Fixtures ==============

@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def session_factory(db_engine):
    """同一数据库上的独立会话（模拟并发请求）"""
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


# ============== 外部句柄 Fixtures ==============

@pytest.fixture
def gateway():
    return FakePaymentGateway()


@pytest.fixture
def email_channel():
    return FakeEmailChannel()


@pytest.fixture
def notification_registry(email_channel):
    registry = NotificationChannelRegistry()
    registry.register(email_channel)
    return registry


@pytest.fixture
def event_bus(notification_registry):
    bus = EventBus()
    register_notification_handlers(bus, notification_registry, "http://localhost:3000")
    return bus


@pytest.fixture(scope="function")
def client(db_session, gateway, event_bus, notification_registry):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_event_bus] = lambda: event_bus
    app.dependency_overrides[get_notification_registry] = lambda: notification_registry
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ============== 业务数据 Fixtures ==============

@pytest.fixture
def rooms(db_session) -> List[Room]:
    seed_rooms(db_session)
    return db_session.query(Room).order_by(Room.id).all()


def _make_user(db, email, verified=True, member=False, email_notifications=True):
    user = User(
        first_name="Jane",
        last_name="Doe",
        email=email,
        phone_number="2145550100",
        password_hash=get_password_hash("password123"),
        is_email_verified=verified,
        is_membership_active=member,
        email_notifications=email_notifications,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db_session) -> User:
    """已验证邮箱、尚未缴押金的用户"""
    return _make_user(db_session, "jane@example.com")


@pytest.fixture
def member(db_session) -> User:
    """已激活会员的用户"""
    return _make_user(db_session, "member@example.com", member=True)


@pytest.fixture
def other_user(db_session) -> User:
    return _make_user(db_session, "other@example.com")


@pytest.fixture
def unverified_user(db_session) -> User:
    return _make_user(db_session, "new@example.com", verified=False)


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def weekdays():
    """返回从下周起的 n 个工作日（YYYY-MM-DD）"""
    def _weekdays(n: int, start: Optional[date] = None) -> List[str]:
        current = start or date.today() + timedelta(days=7)
        result = []
        while len(result) < n:
            if current.weekday() < 5:
                result.append(current.isoformat())
            current += timedelta(days=1)
        return result
    return _weekdays


@pytest.fixture
def next_saturday():
    today = date.today()
    return today + timedelta(days=(5 - today.weekday()) % 7 or 7)
