"""
Push a recording's filename back to the Plaud cloud.

Locally derived recordings (split parts, silence-removed copies, uploads)
have no server-side object and are never synced.
"""

import logging
from typing import Callable

from db.schema_constants import LOCAL_ORIGIN_PREFIXES
from plaud.client import PlaudClient, create_plaud_client

logger = logging.getLogger(__name__)

SYNCED = "synced"
LOCALLY_CREATED = "locally_created"
NO_CONNECTION = "no_connection"


def is_locally_created(plaud_file_id: str) -> bool:
    return plaud_file_id.startswith(LOCAL_ORIGIN_PREFIXES)


async def sync_title_to_plaud(
    user_id: str,
    recording_id: str,
    plaud_file_id: str,
    new_title: str,
    *,
    connections,
    recordings,
    client_factory: Callable[..., PlaudClient] = create_plaud_client,
) -> str:
    """
    Update the remote filename and clear the local filename_modified flag.

    Returns:
        "synced", "locally_created" or "no_connection"

    Raises:
        PlaudApiError: If the remote update fails
    """
    if is_locally_created(plaud_file_id):
        return LOCALLY_CREATED

    connection = await connections.get_connection_for_user(user_id)
    if not connection:
        return NO_CONNECTION

    async with client_factory(connection["bearer_token"], connection["api_base"]) as client:
        await client.update_filename(plaud_file_id, new_title)

    await recordings.set_filename_modified(recording_id, False)
    logger.info("Synced title of %s to Plaud", recording_id)
    return SYNCED
