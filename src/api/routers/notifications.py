from fastapi import APIRouter, Depends

from api.deps import require_admin
from api.schemas import SendEmailRequest, envelope
from core.dependencies import get_notification_service
from models.user import User
from services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/send-email")
def send_email(body: SendEmailRequest, _: User = Depends(require_admin),
               notifications: NotificationService = Depends(get_notification_service)):
    message_id = notifications.send_direct(body.to, body.subject, body.template, body.data)
    return envelope({"message_id": message_id}, "Email sent successfully")
