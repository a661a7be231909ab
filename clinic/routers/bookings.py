"""
预订路由 - 创建、查询、支付确认
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, status
from clinic_core.payment import PaymentError
from clinic.models.ontology import BookingStatus, User
from clinic.models.schemas import (
    BookingCreate, BookingCreatedResponse, BookingResponse, BookingConfirmRequest,
    ReconcileResponse, PriceBreakdownResponse
)
from clinic.dependencies import get_booking_service, get_reconciliation_service
from clinic.services.booking_service import BookingService
from clinic.services.reconciliation_service import ReconciliationService
from clinic.security.auth import get_current_user, get_current_verified_user
from clinic.routers.payments import to_reconcile_response

router = APIRouter(prefix="/bookings", tags=["预订"])


@router.post("", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_verified_user)
):
    """创建预订并返回支付所需的 client secret"""
    created = service.create_booking(current_user, data.rooms, data.booking_type)
    return BookingCreatedResponse(
        booking_id=created.booking.id,
        payment_intent_id=created.booking.payment_intent_id,
        client_secret=created.client_secret,
        total_amount=created.booking.total_amount,
        price=PriceBreakdownResponse.model_validate(created.price),
    )


@router.get("", response_model=List[BookingResponse])
def list_bookings(
    status: Optional[BookingStatus] = None,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_user)
):
    """当前用户的预订列表"""
    return service.list_user_bookings(current_user.id, status)


@router.post("/confirm", response_model=ReconcileResponse)
def confirm_booking(
    data: BookingConfirmRequest,
    service: ReconciliationService = Depends(get_reconciliation_service),
    current_user: User = Depends(get_current_user)
):
    """预订确认：调用方报告支付结果"""
    details = data.payment_details
    error = None
    if details and details.error:
        error = PaymentError(
            message=details.error.message,
            code=details.error.code,
            decline_code=details.error.decline_code,
        )
    result = service.confirm_booking(
        data.payment_intent_id,
        data.payment_status,
        amount=details.amount if details else None,
        currency=details.currency if details else None,
        payment_method_type=details.payment_method_type if details else None,
        error=error,
        rooms=data.rooms,
        user_id=current_user.id,
    )
    return to_reconcile_response(result)


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_user)
):
    """获取预订详情"""
    return service.get_booking(booking_id, user_id=current_user.id)
