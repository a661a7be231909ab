"""
支付路由 - 支付校验
"""
from fastapi import APIRouter, Depends
from clinic.models.ontology import User
from clinic.models.schemas import (
    PaymentVerifyRequest, ReconcileResponse, BookingResponse, MembershipStatus
)
from clinic.dependencies import get_reconciliation_service
from clinic.services.reconciliation_service import ReconciliationService, ReconciliationResult
from clinic.security.auth import get_current_user

router = APIRouter(prefix="/payments", tags=["支付"])


def to_reconcile_response(result: ReconciliationResult) -> ReconcileResponse:
    return ReconcileResponse(
        message=result.message,
        booking=BookingResponse.model_validate(result.booking),
        transitioned=result.transitioned,
        membership=MembershipStatus(
            is_membership_active=result.user.is_membership_active,
            activated_at=result.user.membership_activated_at,
        ),
    )


@router.post("/verify", response_model=ReconcileResponse)
def verify_payment(
    data: PaymentVerifyRequest,
    service: ReconciliationService = Depends(get_reconciliation_service),
    current_user: User = Depends(get_current_user)
):
    """支付校验：向支付处理方查询结果并对账"""
    result = service.verify_payment(data.payment_intent_id, user_id=current_user.id)
    return to_reconcile_response(result)
