"""Server registry and approval endpoints."""

import logging

from fastapi import APIRouter, HTTPException, status

from rolink.api.deps import AdminUserId, SessionDep
from rolink.models import ApprovalStatus
from rolink.models.server import ServerApprovalUpdate, ServerCreate, ServerRead
from rolink.services import storage

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[ServerRead])
async def list_servers(session: SessionDep):
    """List every known server."""
    return await storage.list_servers(session)


@router.get("/approved", response_model=list[ServerRead])
async def list_approved_servers(session: SessionDep):
    """List servers the bot may operate in."""
    return await storage.list_servers(session, approved_only=True)


@router.post("", response_model=ServerRead, status_code=status.HTTP_201_CREATED)
async def create_server(server_in: ServerCreate, session: SessionDep):
    """Register a server."""
    if await storage.get_server(session, server_in.server_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Server {server_in.server_id} already exists",
        )
    server = await storage.create_server(session, server_in)
    await session.commit()
    return server


@router.patch("/{server_id}/approve", response_model=ServerRead)
async def update_server_approval(
    server_id: str,
    approval: ServerApprovalUpdate,
    session: SessionDep,
    admin_id: AdminUserId,
):
    """Approve or revoke a server (admin only).

    The server's approval request, if any, follows the new state.
    """
    server = await storage.set_server_approval(session, server_id, approval.is_approved)
    if server is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Server not found")

    request_status = ApprovalStatus.APPROVED if approval.is_approved else ApprovalStatus.DENIED
    await storage.set_approval_request_status(session, server_id, request_status)
    await session.commit()
    logger.info(f"Admin {admin_id} set server {server_id} approved={approval.is_approved}")
    return server
