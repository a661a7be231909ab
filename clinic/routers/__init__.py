# API Routers
from clinic.routers import auth, rooms, prices, availability, bookings, payments

__all__ = ['auth', 'rooms', 'prices', 'availability', 'bookings', 'payments']
