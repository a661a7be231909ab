# Business Services
from clinic.services.availability_service import AvailabilityService
from clinic.services.booking_service import BookingService, BookingCreation
from clinic.services.reconciliation_service import (
    ReconciliationService, PaymentNotification, ReconciliationResult
)
from clinic.services.user_service import UserService
from clinic.services.notification_service import BookingNotifier, register_notification_handlers

__all__ = [
    'AvailabilityService', 'BookingService', 'BookingCreation',
    'ReconciliationService', 'PaymentNotification', 'ReconciliationResult',
    'UserService', 'BookingNotifier', 'register_notification_handlers'
]
