"""Credential resolver — active provider credentials, read with service-level access."""

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import async_session_factory
from app.models.credential import ProviderCredential

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedCredential:
    """Detached copy of a credential row. Secrets never appear in repr or logs."""
    provider: str
    environment: str
    api_key: str = field(repr=False)
    api_secret: str | None = field(default=None, repr=False)


class CredentialResolver:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory or async_session_factory

    async def resolve(self, provider: str, environment: str) -> ResolvedCredential | None:
        """Return the active credential for (provider, environment), or None.

        None is not an error; the engine falls back to a simulated booking.
        """
        async with self._session_factory() as db:
            result = await db.execute(
                select(ProviderCredential)
                .where(
                    ProviderCredential.provider == provider,
                    ProviderCredential.environment == environment,
                    ProviderCredential.is_active.is_(True),
                )
                .order_by(
                    ProviderCredential.is_preferred.desc(),
                    ProviderCredential.updated_at.desc(),
                )
            )
            rows = result.scalars().all()

        if not rows:
            return None
        if len(rows) > 1:
            logger.warning(
                f"{len(rows)} active credentials for {provider}/{environment}; using the preferred, newest one"
            )

        row = rows[0]
        return ResolvedCredential(
            provider=row.provider,
            environment=row.environment,
            api_key=row.api_key,
            api_secret=row.api_secret,
        )


credential_resolver = CredentialResolver()
