"""
User profile and mail endpoints. All of them require a signed-in session.
"""
from fastapi import APIRouter, Depends

from mailhook.dependencies import get_current_account, get_mail_service
from mailhook.models.email import Message
from mailhook.models.user import UserResponse
from mailhook.services.mail_service import MailService

router = APIRouter()


@router.get("/user", response_model=UserResponse)
async def get_user(
    account_id: str = Depends(get_current_account),
    mail: MailService = Depends(get_mail_service),
):
    """Get the signed-in user's display name and principal name."""
    return await mail.get_user_details(account_id)


@router.get("/emails")
async def get_emails(
    account_id: str = Depends(get_current_account),
    mail: MailService = Depends(get_mail_service),
):
    """List the user's messages (first page only)."""
    return await mail.get_emails(account_id)


@router.get("/emails/{message_id}", response_model=Message)
async def get_email(
    message_id: str,
    account_id: str = Depends(get_current_account),
    mail: MailService = Depends(get_mail_service),
):
    """Get one message."""
    return await mail.get_email_by_id(account_id, message_id)
