"""Partial update with read-modify-write fallback.

Some resource stores reject PATCH on certain collections. ``upsert_merge``
first sends the changes as a PATCH; when that fails it reads the full
record, merges the changes over it, and PUTs the result back.

Conflict policy is last-write-wins: no version token is sent, so a
concurrent writer between the GET and the PUT is silently overwritten.
"""

import enum
import logging
from typing import Any, Dict

from lab_run.adapters.api_client import AbstractLabApiClient, LabApiError

logger = logging.getLogger(__name__)


class ConflictPolicy(str, enum.Enum):
    LAST_WRITE_WINS = "last-write-wins"


async def upsert_merge(
    client: AbstractLabApiClient,
    resource: str,
    record_id: str,
    changes: Dict[str, Any],
    policy: ConflictPolicy = ConflictPolicy.LAST_WRITE_WINS,
) -> Dict[str, Any]:
    """
    Apply ``changes`` to one record.

    Returns:
        The record as returned by the store

    Raises:
        LabApiError: If both the PATCH and the GET+PUT fallback fail
    """
    if policy is not ConflictPolicy.LAST_WRITE_WINS:
        raise ValueError(f"Unsupported conflict policy: {policy}")

    try:
        return await client.patch(resource, record_id, changes)
    except LabApiError as patch_error:
        logger.warning(f"PATCH {resource}/{record_id} failed ({patch_error}), trying PUT")

    existing = await client.get(resource, record_id)
    merged = {**existing, **changes}
    result = await client.put(resource, record_id, merged)
    logger.info(f"PUT fallback updated {resource}/{record_id}")
    return result
