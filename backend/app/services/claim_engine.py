"""Race-safe claiming of the next partition for a task."""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.services import partition_store
from app.services.partition_store import PartitionKey

logger = logging.getLogger(__name__)

MAX_CLAIM_ATTEMPTS = 20


def claim_next(
    db: Session,
    task_id: str,
    from_status: str,
    to_status: str,
    max_attempts: int = MAX_CLAIM_ATTEMPTS,
) -> Optional[PartitionKey]:
    """Move the lowest-ordered ``from_status`` partition to ``to_status``.

    Each attempt is its own short transaction: pick a candidate, then update it
    only if its status is still ``from_status``. Losing the race to another
    claimer (zero rows updated) retries with a fresh candidate. Returns ``None``
    when nothing is claimable or every attempt lost; callers simply poll again.
    """
    for attempt in range(1, max_attempts + 1):
        candidate = partition_store.find_first_with_status(db, task_id, from_status)
        if candidate is None:
            db.commit()
            return None

        won = partition_store.compare_and_set_status(db, candidate, from_status, to_status)
        db.commit()
        if won:
            return candidate

        logger.debug(
            "Claim contention task=%s time_from=%s attempt=%s/%s",
            task_id,
            candidate.time_from,
            attempt,
            max_attempts,
        )

    logger.info("Claim attempts exhausted task=%s attempts=%s", task_id, max_attempts)
    return None
