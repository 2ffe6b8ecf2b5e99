# pizzabot/config.py
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

# Load .env locally (safe in prod too)
load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_MENU_PATH = PROJECT_ROOT / "data" / "menu.json"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


# -------------------
# Config (env-driven)
# -------------------
class Settings(BaseModel):
    app_env: str = os.getenv("APP_ENV", "development").strip().lower()
    bot_name: str = os.getenv("BOT_NAME", "PizzaBot")

    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./pizzabot.db")
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # "luis" talks to the LUIS endpoint, "openai" uses the structured-output parser
    nlu_backend: str = os.getenv("NLU_BACKEND", "luis").strip().lower()
    luis_endpoint: str = os.getenv("LUIS_ENDPOINT", "").strip()
    luis_app_id: str = os.getenv("LUIS_APP_ID", "").strip()
    luis_subscription_key: str = os.getenv("LUIS_SUBSCRIPTION_KEY", "").strip()

    qna_endpoint: str = os.getenv("QNA_MAKER_ENDPOINT", "").strip()
    qna_auth: str = os.getenv("QNA_MAKER_AUTH", "").strip()

    openai_api_key: str = os.getenv("OPENAI_API_KEY", "").strip()
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-5-mini").strip()

    http_timeout: float = _env_float("HTTP_TIMEOUT", 10.0)

    pizza_gif: str = os.getenv("PIZZA_GIF", "").strip()
    order_phone: str = os.getenv("ORDER_PHONE", "03-6324422").strip()
    currency: str = os.getenv("CURRENCY", "NIS").strip()
    menu_path: str = os.getenv("MENU_PATH", str(DEFAULT_MENU_PATH))

    log_level: str = os.getenv("LOG_LEVEL", "").strip().upper()
    log_dir: str = os.getenv("LOG_DIR", "logs")
    log_file: str = os.getenv("LOG_FILE", "pizzaBot.log")

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def luis_url(self) -> str:
        return self.luis_endpoint + self.luis_app_id


settings = Settings()
