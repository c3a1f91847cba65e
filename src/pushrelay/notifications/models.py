"""Pydantic models for notification delivery."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_TITLE = "New Notification"
DEFAULT_BODY = "This is a new notification"
DEFAULT_ICON = "/icon.png"


class NotificationRequest(BaseModel):
    """Notification content; blank fields fall back to defaults."""

    title: str | None = None
    body: str | None = None
    icon: str | None = None

    def envelope(self) -> dict:
        """Payload in the shape the service worker expects."""
        return {
            "notification": {
                "title": self.title or DEFAULT_TITLE,
                "body": self.body or DEFAULT_BODY,
                "icon": self.icon or DEFAULT_ICON,
            },
        }


class DeliveryResult(BaseModel):
    """Outcome of one delivery attempt."""

    success: bool
    id: str
    error: str | None = None


class SendSummary(BaseModel):
    """Aggregate outcome of a broadcast."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str = "Notification sending completed"
    successful: int
    failed: int
    total_processed: int = Field(description="Live targets attempted")
    results: list[DeliveryResult] = Field(default_factory=list)


class SendOneResponse(BaseModel):
    message: str = "Notification sent successfully"
    id: str
