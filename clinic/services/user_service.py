"""
用户服务 - 注册、邮箱验证与登录
"""
import logging
import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_core.engine import Event, EventBus
from clinic.errors import ConflictError, NotFoundError, ValidationError
from clinic.models.ontology import User, utcnow
from clinic.models.events import EventType, UserRegisteredData
from clinic.models.schemas import UserRegister
from clinic.security.auth import get_password_hash, verify_password

logger = logging.getLogger(__name__)


def generate_verification_token() -> str:
    return secrets.token_hex(32)


def generate_verification_code() -> str:
    """6 位数字验证码"""
    return str(100000 + secrets.randbelow(900000))


class UserService:
    """用户服务"""

    def __init__(self, db: Session, event_bus: Optional[EventBus] = None,
                 verification_expire_hours: int = 24):
        self.db = db
        self.event_bus = event_bus
        self.verification_expire_hours = verification_expire_hours

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def _issue_verification(self, user: User) -> None:
        expires = utcnow() + timedelta(hours=self.verification_expire_hours)
        user.verification_token = generate_verification_token()
        user.verification_token_expires = expires
        user.verification_code = generate_verification_code()
        user.verification_code_expires = expires

    def register(self, data: UserRegister) -> User:
        """注册用户并发送验证邮件"""
        if self.get_user_by_email(data.email):
            raise ConflictError("该邮箱已注册")

        user = User(
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            phone_number=data.phone_number,
            password_hash=get_password_hash(data.password),
            is_email_verified=False,
            is_membership_active=False,
        )
        self._issue_verification(user)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("该邮箱已注册")
        self.db.refresh(user)

        logger.info(f"User {user.id} registered: {user.email}")
        self._publish_verification(user)
        return user

    def resend_code(self, email: str) -> User:
        """重新生成验证码与验证链接"""
        user = self.get_user_by_email(email)
        if not user:
            raise NotFoundError("用户不存在")
        if user.is_email_verified:
            raise ValidationError("邮箱已验证")
        self._issue_verification(user)
        self.db.commit()
        self.db.refresh(user)
        self._publish_verification(user)
        return user

    def verify_code(self, email: str, code: str) -> User:
        """验证码验证邮箱"""
        user = self.get_user_by_email(email)
        if not user:
            raise NotFoundError("用户不存在")
        if user.is_email_verified:
            return user
        if (
            not user.verification_code
            or user.verification_code != code
            or not user.verification_code_expires
            or user.verification_code_expires < utcnow()
        ):
            raise ValidationError("验证码无效或已过期")
        return self._mark_verified(user)

    def verify_token(self, token: str) -> User:
        """验证链接验证邮箱"""
        user = self.db.query(User).filter(User.verification_token == token).first()
        if (
            not user
            or not user.verification_token_expires
            or user.verification_token_expires < utcnow()
        ):
            raise ValidationError("验证链接无效或已过期")
        return self._mark_verified(user)

    def _mark_verified(self, user: User) -> User:
        user.is_email_verified = True
        user.verification_token = None
        user.verification_token_expires = None
        user.verification_code = None
        user.verification_code_expires = None
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User {user.id} verified email")
        self._publish(EventType.EMAIL_VERIFIED, {
            "user_id": user.id,
            "first_name": user.first_name,
            "email": user.email,
        })
        return user

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """校验邮箱密码，失败返回 None"""
        user = self.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            return None
        return user

    def _publish_verification(self, user: User) -> None:
        self._publish(EventType.USER_REGISTERED, UserRegisteredData(
            user_id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            verification_token=user.verification_token,
            verification_code=user.verification_code,
        ).to_dict())

    def _publish(self, event_type: EventType, data: dict) -> None:
        if self.event_bus is None:
            return
        self.event_bus.publish(Event(
            event_type=event_type.value,
            timestamp=utcnow(),
            data=data,
            source="user_service",
        ))
