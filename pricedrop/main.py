import logging
import sys
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from pricedrop.config import Settings
from pricedrop.exceptions.custom import (
    BookingNotFoundError,
    GmailError,
    NoPriceDropError,
    RateLimitError,
    ReconnectRequiredError,
    RepositoryError,
    SchedulerError,
)
from pricedrop.exceptions.handlers import (
    booking_not_found_handler,
    gmail_error_handler,
    no_price_drop_handler,
    rate_limit_error_handler,
    reconnect_required_handler,
    repository_error_handler,
    scheduler_error_handler,
    unexpected_error_handler,
)
from pricedrop.routers.bookings import router as bookings_router
from pricedrop.routers.gmail import router as gmail_router
from pricedrop.routers.prices import router as prices_router
from pricedrop.routers.scheduler import router as scheduler_router
from pricedrop.services.bookings import BookingService
from pricedrop.services.email_ingestion import EmailIngestionService
from pricedrop.services.gmail import GmailService
from pricedrop.services.google_oauth import GoogleOAuthService
from pricedrop.services.page_fetcher import PageFetcher
from pricedrop.services.price_refresh import PriceRefreshService
from pricedrop.services.repository import BookingRepository, InMemoryBookingRepository
from pricedrop.services.scheduler import SchedulerService
from pricedrop.services.supabase import SupabaseBookingRepository

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        repository: BookingRepository
        if settings.supabase_url and settings.supabase_service_role_key:
            repository = SupabaseBookingRepository(
                client, settings.supabase_url, settings.supabase_service_role_key
            )
        else:
            logger.warning("Supabase not configured, bookings are kept in memory")
            repository = InMemoryBookingRepository()

        oauth: GoogleOAuthService | None = None
        if settings.google_client_id and settings.google_client_secret:
            oauth = GoogleOAuthService(
                client, settings.google_client_id, settings.google_client_secret
            )

        app.state.booking_repository = repository
        app.state.price_refresh_service = PriceRefreshService(
            repository,
            PageFetcher(client, timeout=settings.http_timeout),
            settings.refresh_config(),
        )
        app.state.email_ingestion_service = EmailIngestionService(
            GmailService(client, timeout=settings.http_timeout),
            repository,
            settings.ingestion_config(),
            oauth=oauth,
        )
        app.state.scheduler_service = SchedulerService(
            client, settings.price_refresh_url, token=settings.scheduler_token
        )
        app.state.booking_service = BookingService(repository)

        yield


app = FastAPI(title="Pricedrop", lifespan=lifespan)

app.add_exception_handler(BookingNotFoundError, booking_not_found_handler)
app.add_exception_handler(GmailError, gmail_error_handler)
app.add_exception_handler(NoPriceDropError, no_price_drop_handler)
app.add_exception_handler(RepositoryError, repository_error_handler)
app.add_exception_handler(ReconnectRequiredError, reconnect_required_handler)
app.add_exception_handler(SchedulerError, scheduler_error_handler)
app.add_exception_handler(RateLimitError, rate_limit_error_handler)
app.add_exception_handler(Exception, unexpected_error_handler)

app.include_router(prices_router)
app.include_router(gmail_router)
app.include_router(scheduler_router)
app.include_router(bookings_router)
