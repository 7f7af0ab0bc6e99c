from app.repositories.booking_repository import BookingRepository
from app.repositories.business_repository import BusinessDirectory

__all__ = ["BookingRepository", "BusinessDirectory"]
