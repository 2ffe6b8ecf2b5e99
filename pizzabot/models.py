# pizzabot/models.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from .db import Base


class Order(Base):
    __tablename__ = "orders"
    id = Column(String(36), primary_key=True)
    type = Column(String, nullable=False)  # delivery | pickup
    quantity = Column(Integer, nullable=False)
    toppings = Column(Text, default="")  # comma separated
    price = Column(Integer, nullable=False)
    status = Column(String, default="new order")
    username = Column(String, nullable=False)
    user_address = Column(Text, default="")
    created_at = Column(DateTime, default=datetime.utcnow)


class Conversation(Base):
    __tablename__ = "conversations"
    conversation_id = Column(String, primary_key=True)
    profile_json = Column(Text, default="{}")
    dialog_json = Column(Text, default="[]")  # dialog stack frames
    updated_at = Column(DateTime, default=datetime.utcnow)


class ConversationLog(Base):
    __tablename__ = "conversation_logs"
    conversation_id = Column(String, primary_key=True)
    user = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class ConversationTurn(Base):
    __tablename__ = "conversation_turns"
    id = Column(Integer, primary_key=True)
    conversation_id = Column(String, ForeignKey("conversation_logs.conversation_id"), index=True, nullable=False)
    user_text = Column(Text, nullable=True)
    bot_json = Column(Text, default="[]")
    created_at = Column(DateTime, default=datetime.utcnow)
