from fastapi import APIRouter

from pricedrop.dependencies import BookingDep
from pricedrop.schemas.booking import Booking, BookingCreate
from pricedrop.schemas.responses import AlertsResponse, RebookResponse

router = APIRouter(prefix="/bookings")


@router.post("", response_model=Booking, status_code=201)
async def create_booking(request: BookingCreate, service: BookingDep) -> Booking:
    return await service.create(request)


@router.get("/alerts", response_model=AlertsResponse)
async def list_price_alerts(service: BookingDep, user_id: str | None = None) -> AlertsResponse:
    return AlertsResponse(alerts=await service.price_alerts(user_id))


@router.post("/{booking_id}/rebook", response_model=RebookResponse)
async def rebook(booking_id: str, service: BookingDep) -> RebookResponse:
    booking, savings = await service.rebook(booking_id)
    return RebookResponse(success=True, booking=booking, savings=savings)
