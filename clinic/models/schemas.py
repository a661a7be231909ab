"""
Pydantic 模式定义
用于 API 请求/响应验证
"""
import re
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List, Union
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from clinic.models.ontology import TimeSlot, BookingType, BookingStatus, PaymentStatus
from clinic.domain.availability import DayStatus

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?1?\d{9,15}$")


# ============== 用户 Schemas ==============

class UserRegister(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: str
    phone_number: str
    password: str = Field(..., min_length=8)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("姓名不能为空")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not EMAIL_RE.match(v):
            raise ValueError("邮箱格式不正确")
        return v

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        if not PHONE_RE.match(re.sub(r"\D", "", v)):
            raise ValueError("手机号格式不正确")
        return v.strip()


class VerifyCodeRequest(BaseModel):
    email: str
    code: str = Field(..., min_length=6, max_length=6)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class ResendCodeRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone_number: Optional[str] = None
    is_email_verified: bool
    is_membership_active: bool
    membership_activated_at: Optional[datetime] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# ============== 房间 Schemas ==============

class RoomResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    model_config = ConfigDict(from_attributes=True)


# ============== 房间选择 Schemas ==============

class DateEntryIn(BaseModel):
    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class RoomSelectionIn(BaseModel):
    room_id: int
    name: Optional[str] = None
    time_slot: TimeSlot = TimeSlot.FULL
    dates: List[Union[DateEntryIn, str]] = Field(default_factory=list)


# ============== 价格 Schemas ==============

class QuoteRequest(BaseModel):
    rooms: List[RoomSelectionIn]
    booking_type: BookingType = BookingType.DAILY
    # 为空时使用当前用户的会员状态
    is_membership_active: Optional[bool] = None


class PriceBreakdownResponse(BaseModel):
    subtotal: Decimal
    tax: Decimal
    security_deposit: Decimal
    total: Decimal
    model_config = ConfigDict(from_attributes=True)


# ============== 可用性 Schemas ==============

class AvailabilityDay(BaseModel):
    date: date
    time_slots: List[TimeSlot]
    status: DayStatus
    available: Optional[bool] = None    # 仅在查询指定时段时返回


class TimeSlotChangeRequest(BaseModel):
    room_id: int
    time_slot: TimeSlot
    dates: List[str] = Field(default_factory=list)


class TimeSlotChangeResponse(BaseModel):
    room_id: int
    time_slot: TimeSlot
    dates: List[str]
    dropped_dates: List[str]


class MonthlyDatesRequest(BaseModel):
    room_id: int
    time_slot: TimeSlot = TimeSlot.FULL
    start_date: date


class MonthlyDatesResponse(BaseModel):
    room_id: int
    time_slot: TimeSlot
    dates: List[str]


# ============== 预订 Schemas ==============

class BookingCreate(BaseModel):
    rooms: List[RoomSelectionIn] = Field(..., min_length=1)
    booking_type: BookingType = BookingType.DAILY


class DateWindowResponse(BaseModel):
    date: str
    start_time: str
    end_time: str
    model_config = ConfigDict(from_attributes=True)


class BookingRoomResponse(BaseModel):
    room_id: int
    name: str
    time_slot: TimeSlot
    dates: List[DateWindowResponse]
    model_config = ConfigDict(from_attributes=True)


class PaymentErrorSchema(BaseModel):
    message: Optional[str] = None
    code: Optional[str] = None
    decline_code: Optional[str] = None


class PaymentDetailsResponse(BaseModel):
    status: Optional[PaymentStatus] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    payment_method_type: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    error: Optional[PaymentErrorSchema] = None


class BookingResponse(BaseModel):
    id: int
    user_id: int
    booking_type: BookingType
    total_amount: Decimal
    status: BookingStatus
    payment_status: PaymentStatus
    payment_intent_id: Optional[str] = None
    is_membership_active: bool
    payment_details: PaymentDetailsResponse
    rooms: List[BookingRoomResponse]
    created_at: datetime
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class BookingCreatedResponse(BaseModel):
    booking_id: int
    payment_intent_id: str
    client_secret: Optional[str] = None
    total_amount: Decimal
    price: PriceBreakdownResponse


# ============== 支付对账 Schemas ==============

class PaymentVerifyRequest(BaseModel):
    payment_intent_id: Optional[str] = None
    client_secret: Optional[str] = None

    @model_validator(mode="after")
    def resolve_intent_id(self):
        if not self.payment_intent_id:
            if not self.client_secret:
                raise ValueError("需要 payment_intent_id 或 client_secret")
            # client secret 形如 pi_xxx_secret_yyy
            self.payment_intent_id = self.client_secret.split("_secret_")[0]
        return self


class PaymentDetailsIn(BaseModel):
    amount: Optional[int] = Field(None, ge=0)     # 最小货币单位（美分）
    currency: Optional[str] = None
    payment_method_type: Optional[str] = None
    error: Optional[PaymentErrorSchema] = None


class BookingConfirmRequest(BaseModel):
    payment_intent_id: str
    payment_status: str
    payment_details: Optional[PaymentDetailsIn] = None
    rooms: Optional[List[RoomSelectionIn]] = None


class MembershipStatus(BaseModel):
    is_membership_active: bool
    activated_at: Optional[datetime] = None


class ReconcileResponse(BaseModel):
    message: str
    booking: BookingResponse
    transitioned: bool
    membership: MembershipStatus
