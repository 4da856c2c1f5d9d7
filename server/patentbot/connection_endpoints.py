# Management API connection endpoints (OAuth handshake, organization and project pickers)

from datetime import datetime, timedelta
import logging
from typing import Optional
from urllib.parse import quote

from fastapi.responses import RedirectResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from patentbot.internal.management_api import (
    ManagementAPIError,
    app_origin,
    build_authorize_url,
    decode_state,
    exchange_code,
    list_organizations,
    list_projects,
)
from patentbot.models import ManagementConnection
from patentbot.schemas import AuthUser, FinalizeConnectionRequest, ProjectsRequest

logger = logging.getLogger(__name__)


def oauth_init(user: AuthUser, referer: Optional[str], origin: Optional[str]):
    """
    Build the authorize URL the browser should be sent to

    The app origin travels inside the state so the callback can send the user
    back to the page they came from.
    """
    auth_url = build_authorize_url(user.id, app_origin(referer or origin))
    return {
        "authUrl": auth_url,
        "message": "Redirect user to this URL to authorize management API access",
    }


async def oauth_callback(
    db: Session,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
) -> RedirectResponse:
    """Finish the handshake and redirect back into the app; failures redirect too"""
    try:
        if error:
            raise ManagementAPIError(f"OAuth error: {error}")
        if not code or not state:
            raise ManagementAPIError("Missing code or state parameter")

        state_data = decode_state(state)
        user_id = state_data.get("userId")
        origin = state_data.get("origin") or ""
        if not user_id:
            raise ManagementAPIError("Invalid state parameter: missing userId")

        tokens = await exchange_code(code)
        if not isinstance(tokens, dict) or not tokens.get("access_token"):
            raise ManagementAPIError("Failed to exchange code for token: no access token returned")
        access_token = tokens["access_token"]
        organizations = await list_organizations(access_token)
        if not organizations or not isinstance(organizations, list):
            raise ManagementAPIError("No organizations found for this account")
        primary = organizations[0]
        if not isinstance(primary, dict):
            raise ManagementAPIError("Unexpected organization data from Management API")

        expires_in = int(tokens.get("expires_in") or 0)
        connection = db.scalar(
            select(ManagementConnection).where(ManagementConnection.user_id == user_id)
        )
        if connection is None:
            connection = ManagementConnection(user_id=user_id)
            db.add(connection)

        connection.organization_id = primary.get("id")
        connection.access_token = access_token
        connection.refresh_token = tokens.get("refresh_token")
        connection.token_expires_at = datetime.utcnow() + timedelta(seconds=expires_in)
        connection.scopes = ["all"]
        connection.connection_status = "pending"
        connection.connection_metadata = {
            "organization_name": primary.get("name"),
            "connected_at": datetime.utcnow().isoformat(),
        }
        connection.is_active = True
        db.commit()

    except ManagementAPIError as e:
        logger.error(f"Error in OAuth callback: {e.message}")
        return RedirectResponse(f"/new-application?error={quote(e.message)}", status_code=302)
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error in OAuth callback: {e}")
        return RedirectResponse(f"/new-application?error={quote(str(e) or type(e).__name__)}", status_code=302)

    logger.info(f"✅ Management connection stored for user {user_id}")
    return RedirectResponse(f"{origin}/new-application?supabase_connected=true", status_code=302)


def _pending_connection(db: Session, user_id: str) -> ManagementConnection:
    connection = db.scalar(
        select(ManagementConnection)
        .where(
            ManagementConnection.user_id == user_id,
            ManagementConnection.connection_status == "pending",
        )
        .order_by(ManagementConnection.created_at.desc())
    )
    if connection is None:
        raise ManagementAPIError("No pending connection found")
    return connection


async def get_organizations(user: AuthUser, db: Session):
    connection = _pending_connection(db, user.id)
    organizations = await list_organizations(connection.access_token)
    return {"success": True, "organizations": organizations, "connectionId": connection.id}


async def get_projects(request: ProjectsRequest, user: AuthUser, db: Session):
    if not request.organization_id:
        raise ManagementAPIError("Organization ID is required")

    connection = _pending_connection(db, user.id)
    projects = await list_projects(connection.access_token, request.organization_id)
    return {"success": True, "projects": projects}


def finalize_connection(request: FinalizeConnectionRequest, user: AuthUser, db: Session):
    """Attach the chosen project to the user's connection and activate it"""
    if not request.connection_id or not request.organization_id or not request.project_id:
        raise ManagementAPIError("Missing required parameters")

    connection = db.scalar(
        select(ManagementConnection).where(
            ManagementConnection.id == request.connection_id,
            ManagementConnection.user_id == user.id,
        )
    )
    if connection is None:
        raise ManagementAPIError("Failed to finalize connection")

    connection.organization_id = request.organization_id
    connection.project_ref = request.project_ref
    connection.project_name = request.project_name
    connection.project_region = request.project_region
    connection.connection_status = "active"
    connection.is_active = True
    connection.connection_metadata = {
        "project_id": request.project_id,
        "connected_at": datetime.utcnow().isoformat(),
    }
    db.commit()
    logger.info(f"✅ Connection {connection.id} finalized for project {request.project_ref}")

    return {"success": True, "connection": connection.to_dict()}
