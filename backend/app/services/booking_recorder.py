"""Booking recorder — one immutable booking row per execution attempt."""

import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import PersistenceError
from app.models.booking import Booking
from app.schemas.booking import BookingRequest, BookingResult

logger = logging.getLogger(__name__)


class BookingRecorder:
    @staticmethod
    def build_details(request: BookingRequest, result: BookingResult) -> dict:
        """Record payload. Passengers are reduced to names; no birth dates, gender or documents."""
        return {
            "flightId": request.flight_id,
            "provider": result.provider,
            "bookingReference": result.booking_reference,
            "passengers": [
                {"firstName": p.first_name, "lastName": p.last_name}
                for p in request.passengers
            ],
            "totalPrice": result.total_price,
            "currency": result.currency,
            "ticketNumbers": result.ticket_numbers,
            "contactEmail": request.contact_email,
            "contactPhone": request.contact_phone,
            "simulated": result.simulated,
            "error": result.error,
        }

    async def record(
        self,
        db: AsyncSession,
        user_id: str,
        request: BookingRequest,
        result: BookingResult,
    ) -> uuid.UUID:
        """Insert the booking row. Raises PersistenceError on any database failure."""
        booking = Booking(
            user_id=user_id,
            created_by=user_id,
            booking_type="flight",
            status="confirmed" if result.success else "failed",
            simulated=result.simulated,
            details=self.build_details(request, result),
        )
        try:
            db.add(booking)
            await db.commit()
            await db.refresh(booking)
        except SQLAlchemyError as e:
            try:
                await db.rollback()
            except SQLAlchemyError:
                logger.exception("Rollback after failed booking insert also failed")
            raise PersistenceError(f"Failed to save booking {result.booking_reference}") from e

        logger.info(f"Booking {booking.id} recorded ({booking.status}, provider={result.provider})")
        return booking.id


booking_recorder = BookingRecorder()
