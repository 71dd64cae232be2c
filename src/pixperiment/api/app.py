"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from pixperiment.api.admin import router as admin_router
from pixperiment.api.models import (
    ConfirmPaymentRequest,
    CreatePaymentRequest,
    ListUploadsRequest,
    PredictionRequest,
    VoteRequest,
)
from pixperiment.api.rate_limit import client_identity, rate_limit
from pixperiment.app_logging import configure_logging
from pixperiment.containers import AppContainer
from pixperiment.domain.errors import (
    AuthorizationError,
    ConflictError,
    GalleryError,
    InconsistencyError,
    InvalidSignatureError,
    NotFoundError,
    OrderAssignmentError,
    PaymentInitiationError,
    RateLimitExceededError,
    StorageError,
    UpstreamVerificationError,
    ValidationError,
)
from pixperiment.domain.pricing import format_dollars
from pixperiment.domain.uploads import ImageFile, UploadRecord

_RETRY_MESSAGE = "Something went wrong confirming your upload. Please try again."


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)
    _register_exception_handlers(app, logger)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/pricing")
    async def pricing(request: Request) -> dict[str, object]:
        """Return the price of the next upload."""
        state_container: AppContainer = request.app.state.container
        state = state_container.pricing_service.get_state()
        return {
            "uploadCount": state.upload_count,
            "nextPrice": state.next_price,
            "nextPriceDollars": format_dollars(state.next_price),
        }

    @app.post("/payments", dependencies=[Depends(rate_limit("create-payment"))])
    async def create_payment(
        body: CreatePaymentRequest, request: Request
    ) -> dict[str, object]:
        """Validate an upload and open a checkout session for it."""
        state_container: AppContainer = request.app.state.container
        link = state_container.payment_initiator.initiate(
            email=body.email,
            caption=body.caption,
            image=ImageFile(
                name=body.image_file.name,
                type=body.image_file.type,
                data=body.image_file.data,
            ),
        )
        return {"url": link.url, "price": link.price, "session_id": link.session_id}

    @app.post("/payments/webhook")
    async def payment_webhook(request: Request) -> dict[str, str]:
        """Handle signed Stripe events."""
        state_container: AppContainer = request.app.state.container
        payload = await request.body()
        outcome = await state_container.confirmation_service.handle_webhook(
            payload, request.headers.get("stripe-signature")
        )
        return {"status": outcome.value}

    @app.post("/payments/confirm")
    async def confirm_payment(
        body: ConfirmPaymentRequest, request: Request
    ) -> dict[str, object]:
        """Materialize the upload for a session the browser returned from."""
        state_container: AppContainer = request.app.state.container
        result = await state_container.confirmation_service.confirm(body.session_id)
        if result.created:
            return {"upload": _serialize_upload(result.upload)}
        return {"upload_id": str(result.upload.id)}

    @app.get("/uploads")
    async def list_uploads(
        request: Request,
        limit: int | None = None,
        search: str | None = None,
        sort_by: str = Query("date", alias="sortBy"),
        sort_order: str = Query("desc", alias="sortOrder"),
    ) -> dict[str, object]:
        """Return gallery uploads."""
        state_container: AppContainer = request.app.state.container
        uploads = state_container.gallery_service.list_uploads(
            limit=limit, search=search, sort_by=sort_by, sort_order=sort_order
        )
        return {
            "uploads": [_serialize_upload(upload) for upload in uploads],
            "count": len(uploads),
        }

    @app.post("/uploads/search")
    async def search_uploads(
        body: ListUploadsRequest, request: Request
    ) -> dict[str, object]:
        """Return gallery uploads using a JSON query body."""
        state_container: AppContainer = request.app.state.container
        uploads = state_container.gallery_service.list_uploads(
            limit=body.limit,
            search=body.search,
            sort_by=body.sort_by,
            sort_order=body.sort_order,
        )
        return {
            "uploads": [_serialize_upload(upload) for upload in uploads],
            "count": len(uploads),
        }

    @app.post("/votes", dependencies=[Depends(rate_limit("vote"))])
    async def vote(body: VoteRequest, request: Request) -> dict[str, object]:
        """Toggle the caller's vote on an upload."""
        state_container: AppContainer = request.app.state.container
        action = state_container.gallery_service.toggle_vote(
            upload_id=body.upload_id,
            voter_identity=client_identity(request),
            vote_type=body.vote_type,
        )
        return {"success": True, "action": action.value}

    @app.post("/predictions", dependencies=[Depends(rate_limit("prediction"))])
    async def predict(body: PredictionRequest, request: Request) -> dict[str, object]:
        """Record the caller's price prediction for a week."""
        state_container: AppContainer = request.app.state.container
        action = state_container.gallery_service.submit_prediction(
            voter_identity=client_identity(request),
            predicted_price=body.predicted_price,
            week_ending=body.week_ending,
        )
        return {"success": True, "action": action.value}

    return app


def _register_exception_handlers(app: FastAPI, logger: logging.Logger) -> None:
    """Map gallery errors onto HTTP responses."""

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(AuthorizationError)
    async def authorization_error(
        request: Request, exc: AuthorizationError
    ) -> JSONResponse:
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    @app.exception_handler(NotFoundError)
    async def not_found_error(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(ConflictError)
    async def conflict_error(request: Request, exc: ConflictError) -> JSONResponse:
        logger.warning("Conflict on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=409, content={"error": str(exc)})

    @app.exception_handler(InconsistencyError)
    async def inconsistency_error(
        request: Request, exc: InconsistencyError
    ) -> JSONResponse:
        logger.error(
            "Inconsistent payment state for session %s: %s", exc.session_id, exc
        )
        return JSONResponse(status_code=409, content={"error": _RETRY_MESSAGE})

    @app.exception_handler(OrderAssignmentError)
    async def order_assignment_error(
        request: Request, exc: OrderAssignmentError
    ) -> JSONResponse:
        logger.error(
            "Upload order contention for session %s: %s", exc.session_id, exc
        )
        return JSONResponse(status_code=409, content={"error": _RETRY_MESSAGE})

    @app.exception_handler(UpstreamVerificationError)
    async def upstream_error(
        request: Request, exc: UpstreamVerificationError
    ) -> JSONResponse:
        if isinstance(exc, InvalidSignatureError):
            return JSONResponse(status_code=400, content={"error": str(exc)})
        logger.error("Payment verification failed for session %s", exc.session_id)
        return JSONResponse(status_code=502, content={"error": _RETRY_MESSAGE})

    @app.exception_handler(PaymentInitiationError)
    async def payment_initiation_error(
        request: Request, exc: PaymentInitiationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=502,
            content={"error": "Could not start checkout. Please try again."},
        )

    @app.exception_handler(StorageError)
    async def storage_error(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=502, content={"error": _RETRY_MESSAGE})

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_error(
        request: Request, exc: RateLimitExceededError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={"error": "Too many requests", "retryAfter": exc.retry_after},
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(GalleryError)
    async def gallery_error(request: Request, exc: GalleryError) -> JSONResponse:
        logger.error("Unhandled gallery error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": _RETRY_MESSAGE})


def _serialize_upload(upload: UploadRecord) -> dict[str, object]:
    return {
        "id": str(upload.id),
        "user_email": upload.user_email,
        "caption": upload.caption,
        "image_url": upload.image_url,
        "price_paid": upload.price_paid,
        "upload_order": upload.upload_order,
        "created_at": upload.created_at.isoformat(),
        "stripe_session_id": upload.stripe_session_id,
        "upvotes": upload.upvotes,
        "is_recovered": upload.is_recovered,
    }
