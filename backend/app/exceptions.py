"""Booking engine error taxonomy."""


class BookingError(Exception):
    """Base class for every failure the booking engine knows how to classify."""


class ValidationError(BookingError):
    """Request is structurally incomplete or malformed (caller-fixable)."""


class SensitiveDataRejected(BookingError):
    def __init__(self, category: str):
        self.category = category
        super().__init__(
            f"Data appears to contain a {category}. Please remove sensitive information."
        )


class RateLimited(BookingError):
    def __init__(self, remaining: int = 0, retry_after: int = 0):
        self.remaining = remaining
        self.retry_after = retry_after
        super().__init__("Too many booking requests. Please wait a moment before trying again.")


class CredentialUnavailable(BookingError):
    """No usable credential for a provider. Routes to the fallback policy, never to the caller."""


class ProviderError(BookingError):
    def __init__(self, provider: str, detail: str):
        self.provider = provider
        self.detail = detail
        super().__init__(f"{provider}: {detail}")


class PersistenceError(BookingError):
    """Booking record could not be written. Logged, never reverses a provider booking."""
