"""
支付网关抽象层 - 仅定义接口，clinic 层对接具体支付处理方
"""
from clinic_core.payment.gateway import (
    IPaymentGateway,
    PaymentIntentInfo,
    PaymentError,
    PaymentGatewayError,
)

__all__ = ["IPaymentGateway", "PaymentIntentInfo", "PaymentError", "PaymentGatewayError"]
