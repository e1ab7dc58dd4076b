"""
Sync Routes Module.

- POST /sync: Pull new and changed recordings from the user's Plaud account
"""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import ServiceContainer, current_user, get_services
from api.models import SyncResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sync"])


@router.post("/sync", response_model=SyncResponse)
async def sync_recordings(
    user_id: str = Depends(current_user),
    services: ServiceContainer = Depends(get_services),
) -> SyncResponse:
    """
    Run a sync for the calling user.

    Always answers 200: partial failures are listed in `errors` and
    `success` is false when there are any.
    """
    result = await services.sync_engine.sync(user_id)
    return SyncResponse(**result.to_dict())
