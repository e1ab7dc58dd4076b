"""
Plaud Connection Routes Module.

- POST /plaud/connect: Validate a bearer token and save the sync connection
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import ServiceContainer, current_user, get_services
from api.models import PlaudConnectRequest, PlaudConnectResponse
from plaud.connect import connect_plaud
from utils.errors import PipelineError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/plaud", tags=["plaud"])


@router.post("/connect", response_model=PlaudConnectResponse)
async def connect(
    payload: PlaudConnectRequest,
    user_id: str = Depends(current_user),
    services: ServiceContainer = Depends(get_services),
) -> PlaudConnectResponse:
    try:
        result = await connect_plaud(
            user_id,
            payload.bearer_token,
            payload.api_base,
            connections=services.connections,
            client_factory=services.connect_client_factory,
        )
    except PipelineError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    except Exception as exc:
        logger.error("Error connecting Plaud account for %s: %s", user_id, exc, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to connect to Plaud")
    return PlaudConnectResponse(**result.to_dict())
