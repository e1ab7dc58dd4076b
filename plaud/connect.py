"""
Connect a user's Plaud account.

The bearer token is checked against the device list before anything is
stored; the saved token is always encrypted.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from plaud.client import PlaudClient, validate_api_base
from plaud.plaud_config import DEFAULT_PLAUD_API_BASE
from utils.encryption import encrypt_secret
from utils.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class ConnectResult:
    connection_id: str
    devices: list[dict[str, Any]] = field(default_factory=list)
    success: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "connection_id": self.connection_id, "devices": self.devices}


def plain_token_client(bearer_token: str, api_base: str) -> PlaudClient:
    return PlaudClient(bearer_token, api_base)


async def connect_plaud(
    user_id: str,
    bearer_token: Optional[str],
    api_base: Optional[str] = None,
    *,
    connections,
    client_factory: Callable[[str, str], PlaudClient] = plain_token_client,
) -> ConnectResult:
    """
    Validate a bearer token and save it as the user's sync connection.

    Args:
        bearer_token: Plain token as copied from the Plaud web app
        api_base: Server base URL, defaults to the global server
        client_factory: Builds a client from a plain token and api_base

    Raises:
        ValidationError: Missing token, unknown server or rejected token
        PlaudApiError: Device listing failed after the token was accepted
    """
    token = (bearer_token or "").strip()
    if token.lower().startswith("bearer "):
        token = token[len("bearer "):].strip()
    if not token:
        raise ValidationError("Bearer token is required")

    try:
        base = validate_api_base(api_base or DEFAULT_PLAUD_API_BASE)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    async with client_factory(token, base) as client:
        if not await client.test_connection():
            raise ValidationError("Invalid bearer token")
        device_list = await client.list_devices()

    devices = [device.model_dump() for device in device_list.data_devices]
    connection_id = await connections.upsert_connection(user_id, encrypt_secret(token), base)
    await connections.upsert_devices(user_id, devices)

    logger.info("Connected Plaud account for %s (%d device(s), %s)", user_id, len(devices), base)
    return ConnectResult(connection_id=connection_id, devices=devices)
