# pizzabot/ordering/stores.py
from __future__ import annotations

import json
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Tuple

import structlog
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..db import session_scope
from ..models import Conversation, ConversationLog, ConversationTurn, Order
from .dialogs import DialogStack
from .profile import ConversationProfile, TurnLog

LOGGER = structlog.get_logger(__name__)


class OrderSubmissionError(Exception):
    """The order store refused or failed to record an order."""


class OrderRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    quantity: int
    toppings: str = ""
    price: int
    username: str
    user_address: str = ""


class ProfileStore(Protocol):
    async def get_profile(self, conversation_id: str) -> Optional[ConversationProfile]: ...

    async def set_profile(self, conversation_id: str, profile: ConversationProfile) -> None: ...

    async def get_dialog_stack(self, conversation_id: str) -> DialogStack: ...

    async def save_state(self, conversation_id: str, profile: ConversationProfile, stack: DialogStack) -> None: ...

    async def open_conversation_log(self, conversation_id: str, user: str) -> None: ...

    async def save_turn_log(self, conversation_id: str, turn_log: TurnLog) -> None: ...


class OrderStore(Protocol):
    async def submit_order(self, record: OrderRecord) -> str: ...


# ----------------------------
# In-process store (dev + tests)
# ----------------------------
class MemoryProfileStore:
    def __init__(self) -> None:
        self.profiles: Dict[str, ConversationProfile] = {}
        self.stacks: Dict[str, DialogStack] = {}
        self.logs: Dict[str, List[TurnLog]] = {}
        self.log_users: Dict[str, str] = {}

    async def get_profile(self, conversation_id: str) -> Optional[ConversationProfile]:
        return self.profiles.get(conversation_id)

    async def set_profile(self, conversation_id: str, profile: ConversationProfile) -> None:
        self.profiles[conversation_id] = profile

    async def get_dialog_stack(self, conversation_id: str) -> DialogStack:
        return self.stacks.get(conversation_id) or DialogStack()

    async def save_state(self, conversation_id: str, profile: ConversationProfile, stack: DialogStack) -> None:
        self.profiles[conversation_id] = profile
        self.stacks[conversation_id] = stack

    async def open_conversation_log(self, conversation_id: str, user: str) -> None:
        self.log_users[conversation_id] = user
        self.logs.setdefault(conversation_id, [])

    async def save_turn_log(self, conversation_id: str, turn_log: TurnLog) -> None:
        self.logs.setdefault(conversation_id, []).append(turn_log)


# ----------------------------
# SQL store
# ----------------------------
def _load_profile(raw: Optional[str]) -> Optional[ConversationProfile]:
    if not raw or raw == "{}":
        return None
    try:
        return ConversationProfile.model_validate_json(raw)
    except ValidationError as exc:
        LOGGER.warning("profile_unreadable", error=str(exc))
        return None


def _load_stack(raw: Optional[str]) -> DialogStack:
    if not raw:
        return DialogStack()
    try:
        return DialogStack.model_validate_json(raw)
    except ValidationError as exc:
        LOGGER.warning("dialog_stack_unreadable", error=str(exc))
        return DialogStack()


class SqlProfileStore:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _read(self, conversation_id: str) -> Tuple[Optional[str], Optional[str]]:
        with session_scope(self.session_factory) as db:
            row = db.get(Conversation, conversation_id)
            if not row:
                return None, None
            return row.profile_json, row.dialog_json

    def _write(self, conversation_id: str, **columns: str) -> None:
        with session_scope(self.session_factory) as db:
            row = db.get(Conversation, conversation_id)
            if not row:
                row = Conversation(conversation_id=conversation_id, profile_json="{}", dialog_json="[]")
            for name, value in columns.items():
                setattr(row, name, value)
            row.updated_at = datetime.utcnow()
            db.add(row)
            db.commit()

    async def get_profile(self, conversation_id: str) -> Optional[ConversationProfile]:
        profile_json, _ = await run_in_threadpool(self._read, conversation_id)
        return _load_profile(profile_json)

    async def set_profile(self, conversation_id: str, profile: ConversationProfile) -> None:
        await run_in_threadpool(self._write, conversation_id, profile_json=profile.model_dump_json())

    async def get_dialog_stack(self, conversation_id: str) -> DialogStack:
        _, dialog_json = await run_in_threadpool(self._read, conversation_id)
        return _load_stack(dialog_json)

    async def save_state(self, conversation_id: str, profile: ConversationProfile, stack: DialogStack) -> None:
        """Profile and dialog stack in one commit."""
        await run_in_threadpool(
            self._write,
            conversation_id,
            profile_json=profile.model_dump_json(),
            dialog_json=stack.model_dump_json(),
        )

    def _open_log(self, conversation_id: str, user: str) -> None:
        with session_scope(self.session_factory) as db:
            if db.get(ConversationLog, conversation_id):
                return
            now = datetime.utcnow()
            db.add(ConversationLog(conversation_id=conversation_id, user=user, created_at=now, updated_at=now))
            db.commit()

    def _append_turn(self, conversation_id: str, turn_log: TurnLog) -> None:
        with session_scope(self.session_factory) as db:
            log = db.get(ConversationLog, conversation_id)
            if not log:
                log = ConversationLog(conversation_id=conversation_id, user="defaultUser")
            log.updated_at = datetime.utcnow()
            db.add(log)
            db.add(
                ConversationTurn(
                    conversation_id=conversation_id,
                    user_text=turn_log.user_utterance,
                    bot_json=json.dumps(list(turn_log.bot_utterances), ensure_ascii=False),
                )
            )
            db.commit()

    async def open_conversation_log(self, conversation_id: str, user: str) -> None:
        try:
            await run_in_threadpool(self._open_log, conversation_id, user)
        except SQLAlchemyError as exc:
            LOGGER.error("conversation_log_create_failed", conversation_id=conversation_id, error=str(exc))

    async def save_turn_log(self, conversation_id: str, turn_log: TurnLog) -> None:
        try:
            await run_in_threadpool(self._append_turn, conversation_id, turn_log)
        except SQLAlchemyError as exc:
            LOGGER.error("conversation_turn_save_failed", conversation_id=conversation_id, error=str(exc))


class SqlOrderStore:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _insert(self, record: OrderRecord) -> str:
        order_id = str(uuid.uuid4())
        with session_scope(self.session_factory) as db:
            db.add(
                Order(
                    id=order_id,
                    type=record.type,
                    quantity=record.quantity,
                    toppings=record.toppings,
                    price=record.price,
                    status="new order",
                    username=record.username,
                    user_address=record.user_address,
                )
            )
            db.commit()
        return order_id

    async def submit_order(self, record: OrderRecord) -> str:
        try:
            order_id = await run_in_threadpool(self._insert, record)
        except SQLAlchemyError as exc:
            LOGGER.error("order_insert_failed", username=record.username, error=str(exc))
            raise OrderSubmissionError(str(exc)) from exc
        LOGGER.info("order_inserted", order_id=order_id, type=record.type, price=record.price)
        return order_id
