from app.models.booking import Booking, BookingStatus
from app.models.business import Business

__all__ = ["Booking", "BookingStatus", "Business"]
