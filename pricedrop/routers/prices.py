import logging
from typing import Annotated

from fastapi import APIRouter, Header, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from pricedrop.dependencies import PriceRefreshDep
from pricedrop.schemas.responses import PriceRefreshResponse
from pricedrop.services.price_refresh import PriceRefreshService

logger = logging.getLogger(__name__)

router = APIRouter()

_MISSING_PARAMS = (
    "Missing required parameters: bookingId, processAll, testConnection, or checkUrlIntegrity"
)


class PriceRefreshRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    booking_id: str | None = Field(default=None, alias="bookingId")
    process_all: bool = Field(default=False, alias="processAll")
    test_connection: bool = Field(default=False, alias="testConnection")
    check_url_integrity: bool = Field(default=False, alias="checkUrlIntegrity")


async def _dispatch(
    service: PriceRefreshService,
    params: PriceRefreshRequest,
    scheduled: bool,
) -> PriceRefreshResponse | JSONResponse:
    if scheduled:
        logger.info("Price refresh invoked by scheduler")
        params = PriceRefreshRequest(processAll=True)

    if params.test_connection:
        check = await service.check_connection()
        return PriceRefreshResponse(
            success=check.reachable,
            message="Comparison site reachable" if check.reachable else "Comparison site unreachable",
            connection=check,
        )

    if params.check_url_integrity:
        report = await service.check_url_integrity()
        return PriceRefreshResponse(
            success=True,
            message=f"{report.valid} valid, {report.invalid} invalid hotel URLs",
            url_integrity=report,
        )

    if params.process_all:
        summary = await service.refresh_all()
        return PriceRefreshResponse(
            success=True,
            message=f"Processed {summary.total} bookings, {summary.successful} successful",
            summary=summary,
            failure_reasons=summary.failure_reasons,
        )

    if params.booking_id:
        result = await service.refresh_by_id(params.booking_id)
        return PriceRefreshResponse(
            success=result.ok,
            message="Price updated successfully" if result.ok else "Failed to update price",
            price=result.price,
            error=result.error,
        )

    return JSONResponse(status_code=400, content={"success": False, "error": _MISSING_PARAMS})


@router.post(
    "/fetch-hotel-prices",
    response_model=PriceRefreshResponse,
    response_model_exclude_none=True,
)
async def fetch_hotel_prices(
    service: PriceRefreshDep,
    request: PriceRefreshRequest | None = None,
    x_scheduled_function: Annotated[str | None, Header()] = None,
) -> PriceRefreshResponse | JSONResponse:
    return await _dispatch(
        service,
        request or PriceRefreshRequest(),
        scheduled=(x_scheduled_function or "").lower() == "true",
    )


@router.get(
    "/fetch-hotel-prices",
    response_model=PriceRefreshResponse,
    response_model_exclude_none=True,
)
async def fetch_hotel_prices_query(
    service: PriceRefreshDep,
    booking_id: Annotated[str | None, Query(alias="bookingId")] = None,
    process_all: Annotated[bool, Query(alias="processAll")] = False,
    test_connection: Annotated[bool, Query(alias="testConnection")] = False,
    check_url_integrity: Annotated[bool, Query(alias="checkUrlIntegrity")] = False,
) -> PriceRefreshResponse | JSONResponse:
    params = PriceRefreshRequest(
        bookingId=booking_id,
        processAll=process_all,
        testConnection=test_connection,
        checkUrlIntegrity=check_url_integrity,
    )
    return await _dispatch(service, params, scheduled=False)
