"""
Management API client

OAuth handshake and the two read calls (organizations, projects) used to let
a user pick which of their backend projects PatentBot should analyze.
"""

import base64
import json
import logging
import time
from typing import Any, Dict, List
from urllib.parse import urlencode, urlparse

import httpx

from patentbot.internal.settings import get_settings

logger = logging.getLogger(__name__)

DEFAULT_APP_ORIGIN = "http://localhost:8080"


class ManagementAPIError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def callback_url() -> str:
    return f"{get_settings().public_api_url}/api/oauth/callback"


def app_origin(referer: str | None) -> str:
    """scheme://host of the page that started the flow"""
    parsed = urlparse(referer or DEFAULT_APP_ORIGIN)
    if not parsed.scheme or not parsed.netloc:
        parsed = urlparse(DEFAULT_APP_ORIGIN)
    return f"{parsed.scheme}://{parsed.netloc}"


def encode_state(user_id: str, origin: str) -> str:
    payload = {"userId": user_id, "timestamp": int(time.time() * 1000), "origin": origin}
    return base64.b64encode(json.dumps(payload).encode()).decode()


def decode_state(state: str) -> Dict[str, Any]:
    try:
        payload = json.loads(base64.b64decode(state).decode())
    except (ValueError, UnicodeDecodeError) as e:
        raise ManagementAPIError(f"Invalid state parameter: {e}")
    if not isinstance(payload, dict):
        raise ManagementAPIError("Invalid state parameter: expected an object")
    return payload


def build_authorize_url(user_id: str, origin: str) -> str:
    settings = get_settings()
    if not settings.management_oauth_client_id:
        raise ManagementAPIError(
            "MANAGEMENT_OAUTH_CLIENT_ID not configured. Please add this secret.", 500
        )

    params = {
        "client_id": settings.management_oauth_client_id,
        "redirect_uri": callback_url(),
        "response_type": "code",
        "scope": "all",
        "state": encode_state(user_id, origin),
    }
    logger.info(f"[OAUTH-INIT] Using origin: {origin}")
    logger.info(f"[OAUTH-INIT] Callback URL: {params['redirect_uri']}")
    return f"{settings.management_api_url}/v1/oauth/authorize?{urlencode(params)}"


async def exchange_code(code: str) -> Dict[str, Any]:
    """Trade an authorization code for {access_token, refresh_token, expires_in}"""
    settings = get_settings()
    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.post(
                f"{settings.management_api_url}/v1/oauth/token",
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": callback_url(),
                    "client_id": settings.management_oauth_client_id or "",
                    "client_secret": settings.management_oauth_client_secret or "",
                },
            )
    except httpx.HTTPError as e:
        raise ManagementAPIError(f"Failed to exchange code for token: {e}")
    if response.status_code >= 400:
        raise ManagementAPIError(f"Failed to exchange code for token: {response.text}")
    try:
        return response.json()
    except ValueError:
        raise ManagementAPIError("Failed to exchange code for token: invalid JSON response")


async def _get_json(path: str, access_token: str, error_message: str) -> Any:
    settings = get_settings()
    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.get(
                f"{settings.management_api_url}{path}",
                headers={"Authorization": f"Bearer {access_token}"},
            )
    except httpx.HTTPError as e:
        logger.error(f"Management API {path} unreachable: {e}")
        raise ManagementAPIError(error_message)
    if response.status_code >= 400:
        logger.error(f"Management API {path} failed: {response.status_code}")
        raise ManagementAPIError(error_message)
    try:
        return response.json()
    except ValueError:
        logger.error(f"Management API {path} returned invalid JSON")
        raise ManagementAPIError(error_message)


async def list_organizations(access_token: str) -> List[Dict[str, Any]]:
    return await _get_json(
        "/v1/organizations", access_token,
        "Failed to fetch organizations from Management API",
    )


async def list_projects(access_token: str, organization_id: str) -> List[Dict[str, Any]]:
    return await _get_json(
        f"/v1/projects?{urlencode({'organization_id': organization_id})}", access_token,
        "Failed to fetch projects from Management API",
    )
