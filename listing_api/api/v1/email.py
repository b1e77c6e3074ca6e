import logging

from fastapi import APIRouter, BackgroundTasks, Depends

from listing_api.api.dependencies import get_services
from listing_api.core.container import Services
from listing_api.schemas.email import EmailResponse, InterestEmailRequest

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=EmailResponse)
async def send_interest_email(
        request: InterestEmailRequest,
        background_tasks: BackgroundTasks,
        services: Services = Depends(get_services),
):
    """Notify sales that someone is interested in a listing"""
    background_tasks.add_task(services.email.send_interest, request)
    return EmailResponse(status="OK")
