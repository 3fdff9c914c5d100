"""Storage maintenance: drop expired index entries and overdue sessions.

Expired rows are already invisible to every read, so this only reclaims
space. Safe to run at any time and from any number of processes.
"""

from dataclasses import dataclass

import structlog

from authn.actors.system import ActorSystem

logger = structlog.get_logger()


@dataclass
class PurgeStats:
    """Rows removed by one purge run."""

    index_entries: int = 0
    sessions: int = 0


async def purge_expired(system: ActorSystem) -> PurgeStats:
    """Delete expired verification tokens and sessions past their deadline.

    Args:
        system: Actor system bound to the database to clean.

    Returns:
        PurgeStats with the number of rows removed per table.
    """
    stats = PurgeStats(
        index_entries=await system.index.purge_expired(),
        sessions=await system.purge_overdue_sessions(),
    )
    logger.info(
        "Purged expired rows",
        index_entries=stats.index_entries,
        sessions=stats.sessions,
    )
    return stats
