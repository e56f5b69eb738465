"""Request validator — structural checks on an inbound booking request."""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from app.exceptions import ValidationError
from app.schemas.booking import BookingRequest

REQUIRED_FIELDS = ("flightId", "provider", "passengers", "contactEmail")
PASSENGER_REQUIRED_FIELDS = ("firstName", "lastName", "dateOfBirth", "gender")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


class RequestValidator:
    """Turns a raw JSON body into a BookingRequest or raises ValidationError."""

    def validate(self, payload: Any) -> BookingRequest:
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")

        missing = [f for f in REQUIRED_FIELDS if _is_blank(payload.get(f))]
        if missing:
            raise ValidationError(
                "Missing required fields: " + ", ".join(REQUIRED_FIELDS)
            )

        passengers = payload["passengers"]
        if not isinstance(passengers, list):
            raise ValidationError("passengers must be a list")

        for passenger in passengers:
            if not isinstance(passenger, dict) or any(
                _is_blank(passenger.get(f)) for f in PASSENGER_REQUIRED_FIELDS
            ):
                raise ValidationError(
                    "Each passenger must have firstName, lastName, dateOfBirth, and gender"
                )

        try:
            return BookingRequest.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError(self._describe(e)) from e

    @staticmethod
    def _describe(error: PydanticValidationError) -> str:
        """Human-readable summary of the first pydantic error."""
        first = error.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        return f"Invalid value for {location}: {first.get('msg', 'invalid')}"


request_validator = RequestValidator()
