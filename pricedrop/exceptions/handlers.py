import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from .custom import (
    BookingNotFoundError,
    GmailError,
    NoPriceDropError,
    RateLimitError,
    ReconnectRequiredError,
    RepositoryError,
    SchedulerError,
)

logger = logging.getLogger(__name__)


async def booking_not_found_handler(_request: Request, exc: BookingNotFoundError) -> JSONResponse:
    logger.warning("Booking %s not found", exc.booking_id)
    return JSONResponse(
        status_code=404,
        content={"success": False, "error": str(exc)},
    )


async def no_price_drop_handler(_request: Request, exc: NoPriceDropError) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={"success": False, "error": str(exc)},
    )


async def repository_error_handler(_request: Request, exc: RepositoryError) -> JSONResponse:
    logger.error("Booking store error: %s (status=%s)", exc.message, exc.status_code)
    return JSONResponse(
        status_code=502,
        content={"success": False, "error": f"Booking store error: {exc.message}"},
    )


async def gmail_error_handler(_request: Request, exc: GmailError) -> JSONResponse:
    logger.error("Gmail error: %s (status=%s)", exc.message, exc.status_code)
    return JSONResponse(
        status_code=502,
        content={"success": False, "error": f"Gmail error: {exc.message}"},
    )


async def reconnect_required_handler(_request: Request, exc: ReconnectRequiredError) -> JSONResponse:
    logger.warning("Gmail reconnect required: %s", exc.message)
    return JSONResponse(
        status_code=401,
        content={"success": False, "error": exc.message, "reconnect": True},
    )


async def scheduler_error_handler(_request: Request, exc: SchedulerError) -> JSONResponse:
    logger.error("Scheduler error: %s (status=%s)", exc.message, exc.status_code)
    return JSONResponse(
        status_code=502,
        content={"success": False, "error": exc.message},
    )


async def rate_limit_error_handler(_request: Request, exc: RateLimitError) -> JSONResponse:
    logger.warning("Rate limit hit for %s", exc.service)
    return JSONResponse(
        status_code=429,
        content={"success": False, "error": f"Rate limit exceeded for {exc.service}"},
    )


async def unexpected_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": str(exc) or exc.__class__.__name__},
    )
