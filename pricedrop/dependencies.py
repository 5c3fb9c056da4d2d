from typing import Annotated

from fastapi import Depends, Request

from pricedrop.services.bookings import BookingService
from pricedrop.services.email_ingestion import EmailIngestionService
from pricedrop.services.price_refresh import PriceRefreshService
from pricedrop.services.scheduler import SchedulerService


def get_price_refresh_service(request: Request) -> PriceRefreshService:
    return request.app.state.price_refresh_service


def get_email_ingestion_service(request: Request) -> EmailIngestionService:
    return request.app.state.email_ingestion_service


def get_scheduler_service(request: Request) -> SchedulerService:
    return request.app.state.scheduler_service


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.booking_service


PriceRefreshDep = Annotated[PriceRefreshService, Depends(get_price_refresh_service)]
EmailIngestionDep = Annotated[EmailIngestionService, Depends(get_email_ingestion_service)]
SchedulerDep = Annotated[SchedulerService, Depends(get_scheduler_service)]
BookingDep = Annotated[BookingService, Depends(get_booking_service)]
