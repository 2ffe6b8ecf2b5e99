# pizzabot/ordering/qna.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

LOGGER = structlog.get_logger(__name__)


class QnAUnavailable(Exception):
    """The Q&A service could not be reached or returned no usable answer."""


class FollowUp(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    text: str


class QnAContext(BaseModel):
    """Where a multi-turn exchange left off; sent back with the next question."""

    model_config = ConfigDict(frozen=True)

    previous_qna_id: str
    previous_user_query: str
    follow_ups: List[FollowUp] = Field(default_factory=list)

    def follow_up_for(self, text: str) -> Optional[FollowUp]:
        wanted = (text or "").strip().lower()
        for f in self.follow_ups:
            if f.text.strip().lower() == wanted:
                return f
        return None


class QnAAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    answer: str
    answer_id: str = ""
    follow_ups: List[FollowUp] = Field(default_factory=list)

    @property
    def is_multi_turn(self) -> bool:
        return bool(self.follow_ups)

    def context_for(self, question: str) -> QnAContext:
        return QnAContext(previous_qna_id=self.answer_id, previous_user_query=question, follow_ups=self.follow_ups)


class QnAResolver(Protocol):
    async def resolve_answer(self, question: str, context: Optional[QnAContext] = None) -> QnAAnswer: ...


def build_request_body(question: str, context: Optional[QnAContext] = None) -> Dict[str, Any]:
    if context is None:
        return {"question": question}

    body: Dict[str, Any] = {
        "question": question,
        "context": {
            "previousQnAId": context.previous_qna_id,
            "previousUserQuery": context.previous_user_query,
        },
    }
    picked = context.follow_up_for(question)
    if picked is not None:
        body["qnaId"] = picked.id
    return body


def parse_answer(body: Dict[str, Any]) -> QnAAnswer:
    answers = body.get("answers") or []
    if not answers or not isinstance(answers[0], dict):
        raise QnAUnavailable("QnA returned no answers")

    top = answers[0]
    prompts = ((top.get("context") or {}).get("prompts")) or []
    follow_ups = [
        FollowUp(id=str(p.get("qnaId", "")), text=str(p.get("displayText", "")))
        for p in prompts
        if isinstance(p, dict) and p.get("displayText")
    ]
    return QnAAnswer(answer=str(top.get("answer") or ""), answer_id=str(top.get("id", "")), follow_ups=follow_ups)


class QnAMakerResolver:
    def __init__(self, endpoint: str, auth: str, client: httpx.AsyncClient):
        self.endpoint = endpoint
        self.auth = auth
        self._client = client

    async def resolve_answer(self, question: str, context: Optional[QnAContext] = None) -> QnAAnswer:
        body = build_request_body(question, context)
        try:
            response = await self._client.post(self.endpoint, json=body, headers={"Authorization": self.auth})
        except httpx.HTTPError as exc:
            LOGGER.error("qna_unreachable", error=str(exc))
            raise QnAUnavailable("QnA Maker is not available") from exc

        if response.status_code != 200:
            LOGGER.error("qna_bad_status", status_code=response.status_code, body=response.text[:200])
            raise QnAUnavailable("Bad status from QnA Maker")

        try:
            payload = response.json()
        except ValueError as exc:
            raise QnAUnavailable("Unreadable QnA Maker answer") from exc
        return parse_answer(payload if isinstance(payload, dict) else {})
