from fastapi import APIRouter

from pricedrop.dependencies import SchedulerDep
from pricedrop.schemas.responses import SchedulerResponse

router = APIRouter()


@router.post("/scheduler", response_model=SchedulerResponse)
async def run_scheduler(service: SchedulerDep) -> SchedulerResponse:
    result = await service.trigger()
    return SchedulerResponse(
        success=True,
        message="Scheduler executed successfully",
        result=result,
    )
