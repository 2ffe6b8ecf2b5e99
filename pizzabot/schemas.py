# pizzabot/schemas.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

MESSAGE = "message"
CONVERSATION_UPDATE = "conversationUpdate"
EVENT = "event"


class ChannelAccount(BaseModel):
    id: str = ""
    name: Optional[str] = None


class ConversationAccount(BaseModel):
    id: str


class Activity(BaseModel):
    """The subset of a Bot Framework activity the bot reads."""

    model_config = ConfigDict(populate_by_name=True)

    type: str = MESSAGE
    text: Optional[str] = None
    from_: ChannelAccount = Field(default_factory=ChannelAccount, alias="from")
    conversation: ConversationAccount
    members_added: List[ChannelAccount] = Field(default_factory=list, alias="membersAdded")

    @property
    def is_message(self) -> bool:
        return self.type == MESSAGE

    @property
    def is_membership_update(self) -> bool:
        return self.type in (CONVERSATION_UPDATE, EVENT) and bool(self.members_added)
