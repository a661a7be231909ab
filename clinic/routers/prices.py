"""
价格路由
"""
from fastapi import APIRouter, Depends, HTTPException, status
from clinic.models.ontology import User
from clinic.models.schemas import QuoteRequest, PriceBreakdownResponse
from clinic.dependencies import get_booking_service
from clinic.services.booking_service import BookingService
from clinic.security.auth import get_current_user

router = APIRouter(prefix="/prices", tags=["价格"])


@router.post("/quote", response_model=PriceBreakdownResponse)
def quote_price(
    data: QuoteRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_user)
):
    """报价（展示用，金额四舍五入到分）"""
    membership = data.is_membership_active
    if membership is None:
        membership = current_user.is_membership_active
    price = service.quote(data.rooms, data.booking_type, membership)
    if price is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="请至少选择一个日期")
    return price.rounded()
