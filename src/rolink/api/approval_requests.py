"""Server approval request endpoints."""

import logging

from fastapi import APIRouter, HTTPException, status

from rolink.api.deps import AdminUserId, SessionDep
from rolink.models import ApprovalStatus
from rolink.models.approval_request import (
    ApprovalRequestCreate,
    ApprovalRequestRead,
    ApprovalStatusUpdate,
)
from rolink.services import storage

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[ApprovalRequestRead])
async def list_approval_requests(session: SessionDep):
    """List every approval request."""
    return await storage.list_approval_requests(session)


@router.get("/pending", response_model=list[ApprovalRequestRead])
async def list_pending_approval_requests(session: SessionDep):
    """List requests still awaiting a decision."""
    return await storage.list_approval_requests(session, ApprovalStatus.PENDING)


@router.post("", response_model=ApprovalRequestRead, status_code=status.HTTP_201_CREATED)
async def create_approval_request(request_in: ApprovalRequestCreate, session: SessionDep):
    """Ask for a server to be approved."""
    if await storage.get_approval_request(session, request_in.server_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Approval request for server {request_in.server_id} already exists",
        )
    request = await storage.create_approval_request(session, request_in)
    await session.commit()
    return request


@router.patch("/{server_id}/status", response_model=ApprovalRequestRead)
async def update_approval_request_status(
    server_id: str,
    update: ApprovalStatusUpdate,
    session: SessionDep,
    admin_id: AdminUserId,
):
    """Decide an approval request (admin only).

    Approving also approves the server; denying revokes it.
    """
    request = await storage.set_approval_request_status(session, server_id, update.status)
    if request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Approval request not found")

    if update.status is not ApprovalStatus.PENDING:
        await storage.set_server_approval(session, server_id, update.status is ApprovalStatus.APPROVED)
    await session.commit()
    logger.info(f"Admin {admin_id} set approval request for {server_id} to {update.status.value}")
    return request
