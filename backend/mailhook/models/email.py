"""
Mail message Pydantic models.

Only the projected fields (sender, subject, from, toRecipients) are modelled;
anything else Graph returns is kept as extra data.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List

# $select projection used for every message request
MESSAGE_FIELDS = "sender,subject,from,toRecipients"


class EmailAddress(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None


class Recipient(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email_address: Optional[EmailAddress] = Field(None, alias="emailAddress")


class Message(BaseModel):
    """Mail message from Graph."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    subject: Optional[str] = None
    sender: Optional[Recipient] = None
    from_: Optional[Recipient] = Field(None, alias="from")
    to_recipients: List[Recipient] = Field(default_factory=list, alias="toRecipients")
