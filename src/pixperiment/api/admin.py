"""Admin API endpoints guarded by session tokens."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from pixperiment.api.models import (
    AdminDeleteUploadRequest,
    AdminLoginRequest,
    AdminPaymentStateRequest,
    AdminTokenRequest,
    AdminUpdatePricingRequest,
)
from pixperiment.api.rate_limit import rate_limit
from pixperiment.domain.errors import AuthorizationError

if TYPE_CHECKING:
    from pixperiment.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _container(request: Request) -> AppContainer:
    return request.app.state.container


@router.post("/login", dependencies=[Depends(rate_limit("admin-login"))])
async def login(body: AdminLoginRequest, request: Request) -> dict[str, object]:
    """Exchange the admin password for a session token."""
    session = _container(request).admin_service.login(body.password)
    return {
        "sessionToken": session.token,
        "expiresAt": session.expires_at.isoformat(),
    }


@router.post("/verify", dependencies=[Depends(rate_limit("admin-verify"))])
async def verify(body: AdminTokenRequest, request: Request) -> JSONResponse:
    """Report whether a session token is still valid."""
    try:
        session = _container(request).admin_service.verify(body.session_token)
    except AuthorizationError:
        return JSONResponse(status_code=401, content={"valid": False})
    return JSONResponse(
        content={"valid": True, "expiresAt": session.expires_at.isoformat()}
    )


@router.post("/logout")
async def logout(body: AdminTokenRequest, request: Request) -> dict[str, object]:
    _container(request).admin_service.logout(body.session_token)
    return {"success": True}


@router.post("/uploads/delete")
async def delete_upload(
    body: AdminDeleteUploadRequest, request: Request
) -> dict[str, object]:
    """Delete an upload and its stored image."""
    _container(request).admin_gallery_service.delete_upload(
        body.session_token, body.upload_id
    )
    return {"success": True}


@router.post("/pricing")
async def update_pricing(
    body: AdminUpdatePricingRequest, request: Request
) -> dict[str, object]:
    """Override the base price of an empty gallery."""
    base_price = _container(request).admin_gallery_service.update_base_price(
        body.session_token, body.new_price
    )
    return {"success": True, "basePrice": base_price}


@router.post("/payments/state")
async def payment_state(
    body: AdminPaymentStateRequest, request: Request
) -> dict[str, object]:
    """Show where a checkout session stands in the upload lifecycle."""
    container = _container(request)
    container.admin_service.verify(body.session_token)
    session = container.payment_verifier.fetch_session(body.session_id)
    upload = container.materializer.upload_repository.get_by_session_id(session.id)
    return {
        "sessionId": session.id,
        "paymentStatus": session.payment_status,
        "state": container.materializer.state_of(session).value,
        "uploadId": str(upload.id) if upload else None,
    }


@router.post("/reconcile/sweep")
async def reconcile_sweep(
    body: AdminTokenRequest, request: Request
) -> dict[str, object]:
    """Materialize paid sessions that never produced an upload."""
    container = _container(request)
    container.admin_service.verify(body.session_token)
    return asdict(container.reconciliation_service.sweep_processor_history())


@router.post("/reconcile/counts")
async def reconcile_counts(
    body: AdminTokenRequest, request: Request
) -> dict[str, object]:
    """Resync the cached counter and list gaps in the upload sequence."""
    container = _container(request)
    container.admin_service.verify(body.session_token)
    return asdict(container.reconciliation_service.repair_counts())


@router.post("/reconcile/pending")
async def reconcile_pending(
    body: AdminTokenRequest, request: Request
) -> dict[str, object]:
    container = _container(request)
    container.admin_service.verify(body.session_token)
    return {"deleted": container.reconciliation_service.collect_pending()}


@router.post("/reconcile/orphans")
async def reconcile_orphans(
    body: AdminTokenRequest, request: Request
) -> dict[str, object]:
    container = _container(request)
    container.admin_service.verify(body.session_token)
    return {"deleted": container.reconciliation_service.collect_orphan_images()}


@router.post("/reconcile/purge")
async def reconcile_purge(
    body: AdminTokenRequest, request: Request
) -> dict[str, object]:
    """Drop expired admin sessions and stale rate limit records."""
    container = _container(request)
    container.admin_service.verify(body.session_token)
    return {
        "adminSessions": container.admin_service.purge_expired(),
        "rateLimitRecords": container.rate_limiter.purge(),
    }
