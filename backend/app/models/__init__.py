from app.models.booking import Booking
from app.models.credential import ProviderCredential

__all__ = [
    "Booking",
    "ProviderCredential",
]
