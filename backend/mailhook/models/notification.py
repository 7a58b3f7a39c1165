"""
Change notification models.

Graph posts a collection of change entries to the webhook:

    {
      "value": [
        {
          "subscriptionId": "...",
          "changeType": "created",
          "clientState": "...",
          "resource": "Users/{id}/Messages/{id}",
          "resourceData": {"@odata.type": "#Microsoft.Graph.Message", "id": "..."}
        }
      ]
    }
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

MESSAGE_ODATA_TYPE = "#Microsoft.Graph.Message"


class ResourceData(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    odata_type: Optional[str] = Field(None, alias="@odata.type")
    odata_id: Optional[str] = Field(None, alias="@odata.id")
    id: Optional[str] = None

    @property
    def is_message(self) -> bool:
        return (self.odata_type or "").lower() == MESSAGE_ODATA_TYPE.lower()


class ChangeNotification(BaseModel):
    """One change entry."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    subscription_id: Optional[str] = Field(None, alias="subscriptionId")
    change_type: str = Field(..., alias="changeType")
    client_state: Optional[str] = Field(None, alias="clientState")
    resource: Optional[str] = None
    resource_data: Optional[ResourceData] = Field(None, alias="resourceData")
    tenant_id: Optional[str] = Field(None, alias="tenantId")
    subscription_expiration_date_time: Optional[str] = Field(None, alias="subscriptionExpirationDateTime")


class ChangeNotificationCollection(BaseModel):
    """Batch delivered in a single webhook call."""
    value: List[ChangeNotification]


class NotificationOutcome(BaseModel):
    """Result of acting on one selected change entry."""
    account_id: str
    message_id: str
    change_type: str
    success: bool
    message: Optional[dict] = None
    error: Optional[str] = None
