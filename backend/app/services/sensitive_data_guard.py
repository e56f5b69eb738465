"""Sensitive-data guard — coarse shape detectors run before any provider call.

This is a heuristic, not a PII classifier. It looks for numeric runs shaped
like payment-card numbers (16 digits, optionally grouped by four) and
national identifiers (9 digits grouped 3-2-4). False negatives are
accepted; a false positive blocks the booking.
"""

import json
import logging
import re
from typing import Any

from app.exceptions import SensitiveDataRejected

logger = logging.getLogger(__name__)

SENSITIVE_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"), "credit card number"),
    (re.compile(r"\b\d{3}-\d{2}-\d{4}\b"), "social security number"),
]


class SensitiveDataGuard:
    def __init__(self, patterns: list[tuple[re.Pattern, str]] | None = None):
        self._patterns = patterns or SENSITIVE_PATTERNS

    def detect(self, data: Any) -> str | None:
        """Return the first matching category, or None when the data looks clean."""
        serialized = json.dumps(data, default=str)
        for pattern, category in self._patterns:
            if pattern.search(serialized):
                return category
        return None

    def check(self, data: Any) -> None:
        category = self.detect(data)
        if category:
            logger.warning(f"Booking rejected: payload appears to contain a {category}")
            raise SensitiveDataRejected(category)


sensitive_data_guard = SensitiveDataGuard()
