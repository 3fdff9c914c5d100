"""Purge expired identity index entries and overdue sessions.

Standalone maintenance script, suitable for a cron job.

Usage:
    cd backend && python -m scripts.purge_expired
"""

import logging

logger = logging.getLogger(__name__)


async def main() -> None:
    """CLI entry point: purge against the configured database."""
    from sqlalchemy.ext.asyncio import (
        AsyncSession,
        async_sessionmaker,
        create_async_engine,
    )

    from authn.actors.system import ActorSystem
    from authn.core.config import settings
    from authn.services.cleanup import purge_expired

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = create_async_engine(settings.database_url, echo=False)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    stats = await purge_expired(ActorSystem(factory))

    await engine.dispose()

    logger.info("Final stats: %s", stats)


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
