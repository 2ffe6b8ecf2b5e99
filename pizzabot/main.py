# pizzabot/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, List

import httpx
import structlog
from fastapi import Depends, FastAPI, HTTPException, Request
from openai import AsyncOpenAI
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from .ai_intent import OpenAIClassifier
from .bot import PizzaBot
from .config import Settings, settings
from .db import init_db, make_engine, make_session_factory
from .logging import configure_logging
from .ordering.brain import DialogEngine
from .ordering.finalizer import OrderFinalizer
from .ordering.menu import ToppingMenu, currency_name
from .ordering.menu_store import load_menu
from .ordering.messages import Reply
from .ordering.nlu import Classifier, LuisClassifier
from .ordering.prices import PriceLookup, RedisPriceLookup
from .ordering.qna import QnAMakerResolver, QnAResolver
from .ordering.stores import OrderStore, ProfileStore, SqlOrderStore, SqlProfileStore
from .ordering.validators import PromptValidators
from .schemas import Activity

LOGGER = structlog.get_logger(__name__)


def build_bot(
    cfg: Settings,
    *,
    classifier: Classifier,
    qna: QnAResolver,
    profiles: ProfileStore,
    prices: PriceLookup,
    orders: OrderStore,
    toppings: ToppingMenu,
    currency: str | None = None,
) -> PizzaBot:
    """Wire the dialog engine from its collaborators."""
    engine = DialogEngine(
        validators=PromptValidators(classifier, toppings),
        finalizer=OrderFinalizer(prices, orders),
        qna=qna,
        currency=currency or cfg.currency,
    )
    return PizzaBot(
        engine=engine,
        classifier=classifier,
        qna=qna,
        profiles=profiles,
        toppings=toppings,
        bot_name=cfg.bot_name,
        order_phone=cfg.order_phone,
        pizza_gif=cfg.pizza_gif,
    )


def _make_classifier(cfg: Settings, http: httpx.AsyncClient, toppings: ToppingMenu) -> Classifier:
    if cfg.nlu_backend == "openai":
        if not cfg.openai_api_key:
            raise RuntimeError("NLU_BACKEND=openai needs OPENAI_API_KEY")
        return OpenAIClassifier(AsyncOpenAI(api_key=cfg.openai_api_key), cfg.openai_model, toppings.names)
    if not cfg.luis_endpoint:
        raise RuntimeError("LUIS_ENDPOINT is not configured")
    return LuisClassifier(cfg.luis_url, cfg.luis_subscription_key, http)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings)

    # startup failures here are fatal: the server does not come up
    try:
        db_engine = make_engine(settings.database_url)
        init_db(db_engine)
    except SQLAlchemyError:
        LOGGER.exception("database_unavailable", url=settings.database_url)
        raise

    redis = Redis.from_url(settings.redis_url)
    try:
        await redis.ping()
    except RedisError:
        LOGGER.exception("redis_unavailable", url=settings.redis_url)
        db_engine.dispose()
        raise

    menu = load_menu(settings.menu_path)
    toppings = ToppingMenu.from_menu(menu)
    sessions = make_session_factory(db_engine)
    http = httpx.AsyncClient(timeout=settings.http_timeout)

    app.state.bot = build_bot(
        settings,
        classifier=_make_classifier(settings, http, toppings),
        qna=QnAMakerResolver(settings.qna_endpoint, settings.qna_auth, http),
        profiles=SqlProfileStore(sessions),
        prices=RedisPriceLookup(redis),
        orders=SqlOrderStore(sessions),
        toppings=toppings,
        currency=currency_name(menu, settings.currency),
    )
    LOGGER.info("service_running", bot=settings.bot_name, nlu=settings.nlu_backend)
    try:
        yield
    finally:
        await http.aclose()
        await redis.aclose()
        db_engine.dispose()
        LOGGER.info("service_stopped")


app = FastAPI(
    title="Pizza Ordering Bot",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    lifespan=lifespan,
)


def get_bot(request: Request) -> PizzaBot:
    bot = getattr(request.app.state, "bot", None)
    if bot is None:
        raise HTTPException(status_code=503, detail="Bot is not ready")
    return bot


def _reply_json(reply: Reply) -> Dict[str, Any]:
    out: Dict[str, Any] = {"type": "message"}
    if reply.text is not None:
        out["text"] = reply.text
    if reply.choices:
        out["suggestedActions"] = {"actions": [{"type": "imBack", "title": c, "value": c} for c in reply.choices]}
    if reply.attachments:
        out["attachments"] = [{"contentType": a.content_type, "content": a.content} for a in reply.attachments]
    return out


# -------------------
# Health
# -------------------
@app.get("/")
def root():
    return {"ok": True, "service": "pizzabot"}


# -------------------
# Activities
# -------------------
@app.post("/api/messages")
async def messages(activity: Activity, bot: PizzaBot = Depends(get_bot)):
    replies: List[Dict[str, Any]] = []

    async def send(reply: Reply) -> None:
        replies.append(_reply_json(reply))

    await bot.handle_turn(activity, send)
    return {"replies": replies}
