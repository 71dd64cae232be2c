"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from pixperiment.adapters.resend_email_client import (
    HttpxResendEmailClient,
    LoggingEmailClient,
)
from pixperiment.adapters.stripe_gateway import StripeGateway
from pixperiment.adapters.supabase_admin_session_repository import (
    SupabaseAdminSessionRepository,
)
from pixperiment.adapters.supabase_image_storage import SupabaseImageStorage
from pixperiment.adapters.supabase_pending_upload_repository import (
    SupabasePendingUploadRepository,
)
from pixperiment.adapters.supabase_pricing_repository import SupabasePricingRepository
from pixperiment.adapters.supabase_rate_limit_repository import (
    SupabaseRateLimitRepository,
)
from pixperiment.adapters.supabase_upload_repository import SupabaseUploadRepository
from pixperiment.adapters.supabase_vote_repository import (
    SupabasePredictionRepository,
    SupabaseVoteRepository,
)
from pixperiment.config import Settings, normalize_site_url
from pixperiment.services.admin import AdminGalleryService, AdminService
from pixperiment.services.gallery import GalleryService
from pixperiment.services.materializer import UploadMaterializer
from pixperiment.services.notifications import ConfirmationNotifier
from pixperiment.services.payments import PaymentInitiator
from pixperiment.services.pricing import PricingService
from pixperiment.services.rate_limits import (
    InMemoryRateLimitRepository,
    RateLimiter,
    RateLimitRepository,
)
from pixperiment.services.reconciliation import ReconciliationService
from pixperiment.services.verification import (
    PaymentConfirmationService,
    PaymentVerifier,
)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    pricing_service: PricingService
    payment_initiator: PaymentInitiator
    payment_verifier: PaymentVerifier
    materializer: UploadMaterializer
    confirmation_service: PaymentConfirmationService
    reconciliation_service: ReconciliationService
    admin_service: AdminService
    admin_gallery_service: AdminGalleryService
    gallery_service: GalleryService
    rate_limiter: RateLimiter
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    site_url = normalize_site_url(resolved_settings.site_url)
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    upload_repository = SupabaseUploadRepository(supabase_client)
    pending_repository = SupabasePendingUploadRepository(supabase_client)
    storage = SupabaseImageStorage(supabase_client, resolved_settings.storage_bucket)
    gateway = StripeGateway(
        api_key=resolved_settings.stripe_secret_key,
        webhook_secret=resolved_settings.stripe_webhook_secret,
    )
    pricing_service = PricingService(
        upload_repository=upload_repository,
        pricing_repository=SupabasePricingRepository(supabase_client),
        default_base_price=resolved_settings.base_price_cents,
    )
    payment_initiator = PaymentInitiator(
        pending_repository=pending_repository,
        gateway=gateway,
        pricing_service=pricing_service,
        site_url=site_url,
        currency=resolved_settings.currency,
        product_name=resolved_settings.product_name,
        checkout_expiry_minutes=resolved_settings.checkout_expiry_minutes,
        max_image_bytes=resolved_settings.max_image_bytes,
        max_caption_length=resolved_settings.max_caption_length,
    )
    materializer = UploadMaterializer(
        upload_repository=upload_repository,
        pending_repository=pending_repository,
        storage=storage,
        pricing_service=pricing_service,
        max_image_bytes=resolved_settings.max_image_bytes,
        max_attempts=resolved_settings.materialize_max_attempts,
    )
    email_client: HttpxResendEmailClient | LoggingEmailClient
    if resolved_settings.resend_api_key:
        email_client = HttpxResendEmailClient.create(
            api_key=resolved_settings.resend_api_key,
            sender=resolved_settings.email_from,
        )
    else:
        email_client = LoggingEmailClient()
    payment_verifier = PaymentVerifier(gateway)
    confirmation_service = PaymentConfirmationService(
        verifier=payment_verifier,
        materializer=materializer,
        notifier=ConfirmationNotifier(email_client=email_client, site_url=site_url),
    )
    reconciliation_service = ReconciliationService(
        gateway=gateway,
        materializer=materializer,
        upload_repository=upload_repository,
        pending_repository=pending_repository,
        storage=storage,
        pricing_service=pricing_service,
        lookback_hours=resolved_settings.reconcile_lookback_hours,
        retention_minutes=resolved_settings.pending_retention_minutes,
    )
    admin_service = AdminService(
        session_repository=SupabaseAdminSessionRepository(supabase_client),
        password_hash=resolved_settings.admin_password_hash,
        session_minutes=resolved_settings.admin_session_minutes,
    )
    admin_gallery_service = AdminGalleryService(
        admin_service=admin_service,
        upload_repository=upload_repository,
        storage=storage,
        pricing_service=pricing_service,
    )
    gallery_service = GalleryService(
        upload_repository=upload_repository,
        vote_repository=SupabaseVoteRepository(supabase_client),
        prediction_repository=SupabasePredictionRepository(supabase_client),
    )
    rate_limit_repository: RateLimitRepository
    if resolved_settings.rate_limit_backend == "memory":
        rate_limit_repository = InMemoryRateLimitRepository()
    else:
        rate_limit_repository = SupabaseRateLimitRepository(supabase_client)

    async def close_resources() -> None:
        await email_client.close()

    return AppContainer(
        settings=resolved_settings,
        pricing_service=pricing_service,
        payment_initiator=payment_initiator,
        payment_verifier=payment_verifier,
        materializer=materializer,
        confirmation_service=confirmation_service,
        reconciliation_service=reconciliation_service,
        admin_service=admin_service,
        admin_gallery_service=admin_gallery_service,
        gallery_service=gallery_service,
        rate_limiter=RateLimiter(rate_limit_repository),
        close_resources=close_resources,
    )
