from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional, Union


class ClientFrame(BaseModel):
    event: str
    data: Any = None
    ack: Optional[Union[int, str]] = None

class ChatMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: str = Field(alias="from")
    text: str
    ts: int
    avatarColor: str

class RoomUsers(BaseModel):
    count: int

class AckResponse(BaseModel):
    ok: bool
    room: Optional[str] = None
    count: Optional[int] = None
    msg: Optional[ChatMessage] = None
    error: Optional[str] = None

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

class RoomDetailsResponse(BaseModel):
    room: str
    count: int
    capacity: int
    is_full: bool
