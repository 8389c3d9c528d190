"""Data models for the OpenCode server API.

Field names are snake_case; the server's camelCase wire names are aliases.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class WireModel(BaseModel):
    """Base for models exchanged with the server."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    def to_wire(self) -> dict[str, Any]:
        """Serialize using wire names, omitting unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# ============================================================================
# Sessions
# ============================================================================


class SessionTime(WireModel):
    """Session timestamps (milliseconds since epoch)."""

    created: int | None = None
    updated: int | None = None


class Session(WireModel):
    """Session information."""

    id: str
    title: str | None = None
    version: str | None = None
    project_id: str | None = Field(None, alias="projectID")
    directory: str | None = None
    parent_id: str | None = Field(None, alias="parentID")
    time: SessionTime | None = None


class CreateSessionRequest(WireModel):
    """Request to create a new session."""

    parent_id: str | None = Field(None, alias="parentID")
    title: str | None = None


# ============================================================================
# Messages & Prompts
# ============================================================================


class MessagePart(WireModel):
    """One part of a message (text, tool call, ...)."""

    type: str
    text: str | None = None


class MessageInfo(WireModel):
    """Message metadata."""

    id: str
    session_id: str = Field(..., alias="sessionID")
    role: str
    time_created: datetime | None = Field(None, alias="timeCreated")


class MessageWithParts(WireModel):
    """A message together with its parts."""

    info: MessageInfo
    parts: list[MessagePart] = Field(default_factory=list)


class ModelConfig(WireModel):
    """Provider/model selection for a prompt."""

    provider_id: str = Field(..., alias="providerID")
    model_id: str = Field(..., alias="modelID")


class PromptRequest(WireModel):
    """Request to send a prompt to a session."""

    parts: list[MessagePart]
    model: ModelConfig | None = None
    message_id: str | None = Field(None, alias="messageID")
    no_reply: bool | None = Field(None, alias="noReply")


class PromptResponse(WireModel):
    """Assistant reply to a prompt."""

    info: MessageInfo
    parts: list[MessagePart] = Field(default_factory=list)

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "".join(p.text or "" for p in self.parts if p.type == "text")


class Todo(WireModel):
    """A todo item tracked by a session."""

    id: str
    content: str
    status: str
    priority: str


# ============================================================================
# TUI remote control
# ============================================================================


class AppendPromptRequest(WireModel):
    text: str


class ExecuteCommandRequest(WireModel):
    command: str


class ShowToastRequest(WireModel):
    message: str
    type: str = "info"


# ============================================================================
# Events
# ============================================================================


class SessionStatusEvent(WireModel):
    """Data of a ``session.status`` event."""

    session_id: str = Field(..., alias="sessionID")
    status: str


class MessageUpdatedEvent(WireModel):
    """Data of a ``message.updated`` event."""

    session_id: str = Field(..., alias="sessionID")
    message_id: str = Field(..., alias="messageID")
    message: MessageInfo


class TodoUpdatedEvent(WireModel):
    """Data of a ``todo.updated`` event."""

    session_id: str = Field(..., alias="sessionID")
    todos: list[Todo]


class FileEditedEvent(WireModel):
    """Data of a ``file.edited`` event."""

    path: str
    type: str | None = None


EVENT_DATA_MODELS: dict[str, type[WireModel]] = {
    "session.status": SessionStatusEvent,
    "message.updated": MessageUpdatedEvent,
    "todo.updated": TodoUpdatedEvent,
    "file.edited": FileEditedEvent,
}


class OpenCodeEvent(BaseModel):
    """A server event. ``type`` is open-ended; ``data`` is passed through as-is."""

    model_config = ConfigDict(frozen=True)

    type: str
    data: Any = None

    def parse_data(self) -> WireModel | None:
        """Return ``data`` as its typed model, or None if the type is unknown or the data doesn't fit."""
        model = EVENT_DATA_MODELS.get(self.type)
        if model is None or self.data is None:
            return None
        try:
            return model.model_validate(self.data)
        except ValidationError:
            return None


class GlobalEvent(BaseModel):
    """One event from the global event stream."""

    model_config = ConfigDict(frozen=True)

    directory: str
    payload: OpenCodeEvent

    @property
    def type(self) -> str:
        return self.payload.type
