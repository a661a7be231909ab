# Payment gateways
from clinic.payment.stripe_gateway import StripeGateway

__all__ = ['StripeGateway']
