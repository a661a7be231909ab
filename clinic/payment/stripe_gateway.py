"""
Stripe 支付网关
金额以最小货币单位（美分）传给 Stripe
"""
import logging
from typing import Dict, Optional

import stripe

from clinic_core.payment import IPaymentGateway, PaymentError, PaymentGatewayError, PaymentIntentInfo

logger = logging.getLogger(__name__)


def _to_intent_info(intent) -> PaymentIntentInfo:
    error = None
    raw_error = getattr(intent, "last_payment_error", None)
    if raw_error:
        error = PaymentError(
            message=getattr(raw_error, "message", None),
            code=getattr(raw_error, "code", None),
            decline_code=getattr(raw_error, "decline_code", None),
        )
    return PaymentIntentInfo(
        id=intent.id,
        status=intent.status,
        amount=intent.amount,
        currency=intent.currency,
        payment_method_types=list(getattr(intent, "payment_method_types", None) or []),
        last_payment_error=error,
        metadata=dict(getattr(intent, "metadata", None) or {}),
        client_secret=getattr(intent, "client_secret", None),
    )


class StripeGateway(IPaymentGateway):
    """基于 Stripe PaymentIntent 的支付网关"""

    def __init__(self, api_key: Optional[str]):
        self.api_key = api_key

    def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PaymentIntentInfo:
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.api_key,
                amount=amount,
                currency=currency.lower(),
                metadata=metadata or {},
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe PaymentIntent.create failed: {e}")
            raise PaymentGatewayError(str(e)) from e
        logger.info(f"Created payment intent {intent.id} for {amount} {currency}")
        return _to_intent_info(intent)

    def retrieve_intent(self, intent_id: str) -> PaymentIntentInfo:
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=self.api_key)
        except stripe.StripeError as e:
            logger.error(f"Stripe PaymentIntent.retrieve({intent_id}) failed: {e}")
            raise PaymentGatewayError(str(e)) from e
        return _to_intent_info(intent)
