"""
本体对象定义 (Ontology Objects)
用户、房间、预订及其时段占用记录
"""
from datetime import datetime, date, UTC
from enum import Enum
from typing import Dict, Any
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Enum as SQLEnum,
    Boolean, Numeric, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from clinic.database import Base


def utcnow() -> datetime:
    """当前 UTC 时间（不带时区，与 SQLite 存储一致）"""
    return datetime.now(UTC).replace(tzinfo=None)


# ============== 枚举定义 ==============

class TimeSlot(str, Enum):
    """时段"""
    FULL = "full"          # 全天
    MORNING = "morning"    # 上午
    EVENING = "evening"    # 下午/晚间


class BookingType(str, Enum):
    """预订类型"""
    DAILY = "daily"        # 按天
    MONTHLY = "monthly"    # 按月


class BookingStatus(str, Enum):
    """预订状态"""
    PENDING = "pending"        # 待支付
    CONFIRMED = "confirmed"    # 已确认
    CANCELLED = "cancelled"    # 已取消
    FAILED = "failed"          # 支付失败


class PaymentStatus(str, Enum):
    """支付状态"""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# 占用冲突检查所针对的预订状态
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


# ============== 本体对象定义 ==============

class User(Base):
    """
    用户对象
    会员（押金）标志只会从 False 变为 True 一次
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone_number = Column(String(20))
    password_hash = Column(String(255), nullable=False)

    # 邮箱验证
    is_email_verified = Column(Boolean, default=False, nullable=False)
    verification_token = Column(String(64))
    verification_token_expires = Column(DateTime)
    verification_code = Column(String(6))
    verification_code_expires = Column(DateTime)

    # 会员（一次性押金）
    is_membership_active = Column(Boolean, default=False, nullable=False)
    membership_activated_at = Column(DateTime)

    email_notifications = Column(Boolean, default=True, nullable=False)  # 邮件通知偏好
    stripe_customer_id = Column(String(64), index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Room(Base):
    """可出租的诊室"""
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)


class Booking(Base):
    """
    预订对象 - 聚合根
    创建时为 pending/pending，之后只由支付对账修改；不做物理删除
    """
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_user_status", "user_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    booking_type = Column(SQLEnum(BookingType), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(SQLEnum(BookingStatus), default=BookingStatus.PENDING, nullable=False)
    payment_status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    payment_intent_id = Column(String(255), unique=True)  # 幂等关联键
    # 创建时用户是否已是会员（是否免押金）
    is_membership_active = Column(Boolean, default=False, nullable=False)

    # 支付详情
    payment_amount = Column(Numeric(10, 2))
    payment_currency = Column(String(3))
    payment_method_type = Column(String(50))
    payment_confirmed_at = Column(DateTime)
    payment_updated_at = Column(DateTime)
    payment_error_message = Column(Text)
    payment_error_code = Column(String(100))
    payment_decline_code = Column(String(100))

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # 链接
    user = relationship("User")
    rooms = relationship(
        "BookingRoom", back_populates="booking",
        order_by="BookingRoom.position", cascade="all, delete-orphan"
    )
    slots = relationship("BookingSlot", back_populates="booking", cascade="all, delete-orphan")

    def is_active(self) -> bool:
        """已确认且已付款"""
        return self.status == BookingStatus.CONFIRMED and self.payment_status == PaymentStatus.SUCCEEDED

    def get_duration(self) -> int:
        """首个房间从最早到最晚日期跨越的天数（含首尾）"""
        if not self.rooms or not self.rooms[0].dates:
            return 0
        days = [date.fromisoformat(d.date) for d in self.rooms[0].dates]
        return (max(days) - min(days)).days + 1

    @property
    def payment_details(self) -> Dict[str, Any]:
        error = None
        if self.payment_error_message or self.payment_error_code or self.payment_decline_code:
            error = {
                "message": self.payment_error_message,
                "code": self.payment_error_code,
                "decline_code": self.payment_decline_code,
            }
        return {
            "status": self.payment_status.value if self.payment_status else None,
            "amount": self.payment_amount,
            "currency": self.payment_currency,
            "payment_method_type": self.payment_method_type,
            "confirmed_at": self.payment_confirmed_at,
            "updated_at": self.payment_updated_at,
            "error": error,
        }


class BookingRoom(Base):
    """预订中的单个房间选择（房间 + 时段 + 日期列表）"""
    __tablename__ = "booking_rooms"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    name = Column(String(100), nullable=False)
    time_slot = Column(SQLEnum(TimeSlot), nullable=False)

    booking = relationship("Booking", back_populates="rooms")
    dates = relationship(
        "BookingDate", back_populates="booking_room",
        order_by="BookingDate.position", cascade="all, delete-orphan"
    )


class BookingDate(Base):
    """房间选择中的一个日期及其时间窗口"""
    __tablename__ = "booking_dates"

    id = Column(Integer, primary_key=True, index=True)
    booking_room_id = Column(Integer, ForeignKey("booking_rooms.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    date = Column(String(10), nullable=False)        # YYYY-MM-DD
    start_time = Column(String(5), nullable=False)   # HH:MM
    end_time = Column(String(5), nullable=False)     # HH:MM

    booking_room = relationship("BookingRoom", back_populates="dates")


class BookingSlot(Base):
    """
    时段占用记录 - 每个有效预订占用的 (房间, 日期, 半天)
    全天占用 morning + evening 两行；唯一约束由数据库原子地拒绝第二个写入者。
    预订进入 failed 时在同一事务内删除。
    """
    __tablename__ = "booking_slots"
    __table_args__ = (
        UniqueConstraint("room_id", "date", "half", name="uq_booking_slot"),
    )

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    date = Column(String(10), nullable=False)
    half = Column(String(10), nullable=False)    # morning / evening

    booking = relationship("Booking", back_populates="slots")


class BookingSummary(Base):
    """预订摘要 - 终态转换时写入/更新"""
    __tablename__ = "booking_summaries"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
