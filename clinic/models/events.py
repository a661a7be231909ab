"""
领域事件定义 (Domain Events)
"""
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, Dict, Any, List


class EventType(str, Enum):
    """事件类型枚举"""
    # 预订相关
    BOOKING_CREATED = "booking.created"
    BOOKING_CONFIRMED = "booking.confirmed"
    BOOKING_FAILED = "booking.failed"

    # 用户相关
    USER_REGISTERED = "user.registered"
    EMAIL_VERIFIED = "user.email_verified"
    MEMBERSHIP_ACTIVATED = "user.membership_activated"


@dataclass
class BaseEventData:
    """事件数据基类"""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
        return result


@dataclass
class BookingConfirmedData(BaseEventData):
    """预订确认事件数据（确认邮件所需的全部信息）"""
    booking_id: int = 0
    user_id: int = 0
    customer_name: str = ""
    email: str = ""
    email_notifications: bool = True
    booking_type: str = ""
    total_amount: str = ""
    rooms: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class BookingFailedData(BaseEventData):
    """预订支付失败事件数据"""
    booking_id: int = 0
    user_id: int = 0
    message: str = ""
    code: Optional[str] = None
    decline_code: Optional[str] = None


@dataclass
class MembershipActivatedData(BaseEventData):
    """会员激活事件数据"""
    user_id: int = 0
    booking_id: int = 0
    activated_at: Optional[datetime] = None


@dataclass
class UserRegisteredData(BaseEventData):
    """用户注册事件数据（验证邮件所需信息）"""
    user_id: int = 0
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    verification_token: str = ""
    verification_code: str = ""
