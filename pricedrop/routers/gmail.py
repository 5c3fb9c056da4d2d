from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from pricedrop.dependencies import EmailIngestionDep
from pricedrop.schemas.extraction import ParsingRules
from pricedrop.schemas.responses import GmailSyncResponse

router = APIRouter()


class GmailSyncRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(alias="accessToken", min_length=1)
    user_id: str = Field(alias="userId", min_length=1)
    refresh_token: str | None = Field(default=None, alias="refreshToken")
    parsing_rules: ParsingRules | None = Field(default=None, alias="parsingRules")


@router.post("/process-gmail", response_model=GmailSyncResponse)
async def process_gmail(
    request: GmailSyncRequest,
    service: EmailIngestionDep,
) -> GmailSyncResponse:
    bookings = await service.sync(
        request.access_token,
        request.user_id,
        rules=request.parsing_rules,
        refresh_token=request.refresh_token,
    )
    return GmailSyncResponse(success=True, bookings=bookings)
