from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, model_validator


MAX_TURN_TEXT_CHARS = 32_000
MAX_ATTACHMENTS = 10


class AttachmentPayload(BaseModel):
    name: StrictStr = Field(..., min_length=1)
    content: StrictStr
    type: StrictStr = "text/plain"

    model_config = ConfigDict(extra="forbid")


class TurnRequest(BaseModel):
    """Body of one outbound conversational turn."""

    text: StrictStr = Field(..., min_length=1, max_length=MAX_TURN_TEXT_CHARS, alias="message")
    session_id: Optional[StrictStr] = Field(None, alias="sessionId")
    hidden: StrictBool = False
    attachments: List[AttachmentPayload] = Field(default_factory=list, alias="files", max_length=MAX_ATTACHMENTS)
    wizard_step: Optional[StrictStr] = Field(None, alias="wizardStep")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _strip_text(cls, values: Any) -> Any:
        if isinstance(values, dict):
            for key in ("text", "message"):
                if isinstance(values.get(key), str):
                    values = {**values, key: values[key].strip()}
        return values

    def to_wire(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.text}
        if self.session_id is not None:
            # the backend keys sessions by integer id
            body["sessionId"] = int(self.session_id) if self.session_id.isdigit() else self.session_id
        if self.hidden:
            body["hidden"] = True
        if self.attachments:
            body["files"] = [a.model_dump() for a in self.attachments]
        if self.wizard_step:
            body["wizardStep"] = self.wizard_step
        return body


class FramePayload(BaseModel):
    """One decoded `data:` payload. Unknown keys are ignored."""

    thinking: Optional[bool] = None
    content: Optional[StrictStr] = None
    session_id: Optional[Union[StrictInt, StrictStr]] = Field(None, alias="sessionId")
    error: Optional[StrictStr] = None
    done: Optional[bool] = None
    wizard_step: Optional[StrictStr] = Field(None, alias="wizardStep")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RejectionBody(BaseModel):
    error: Optional[str] = None
    message: Optional[str] = None
    requires_upgrade: Optional[bool] = Field(None, alias="requiresUpgrade")
    requires_payment: Optional[bool] = Field(None, alias="requiresPayment")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @property
    def description(self) -> Optional[str]:
        text = self.error or self.message
        return text.strip() if isinstance(text, str) and text.strip() else None

    @property
    def signals_upgrade(self) -> bool:
        return bool(self.requires_upgrade or self.requires_payment)


class SessionRecord(BaseModel):
    id: Union[StrictInt, StrictStr]
    title: Optional[str] = None
    is_active: bool = Field(False, alias="isActive")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class MessageRecord(BaseModel):
    id: Union[StrictInt, StrictStr]
    session_id: Union[StrictInt, StrictStr] = Field(..., alias="sessionId")
    message: str
    is_ai: bool = Field(False, alias="isAi")
    timestamp: Optional[datetime] = None
    hidden: bool = False

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


__all__ = [
    "MAX_TURN_TEXT_CHARS",
    "MAX_ATTACHMENTS",
    "AttachmentPayload",
    "TurnRequest",
    "FramePayload",
    "RejectionBody",
    "SessionRecord",
    "MessageRecord",
]
