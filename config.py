# -*- coding: utf-8 -*-

import json
import os

from dotenv import find_dotenv, load_dotenv

# .env читается до первого os.getenv: все константы ниже вычисляются при импорте.
load_dotenv(os.getenv("DOTENV_PATH") or find_dotenv(usecwd=True))


def _env_int(name: str, default: int) -> int:
    value = str(os.getenv(name, "")).strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = str(os.getenv(name, "")).strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = str(os.getenv(name, "")).strip().lower()
    if not raw:
        return default
    return raw not in {"0", "false", "off", "no"}


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw = str(os.getenv(name, "")).strip()
    if not raw:
        raw = default
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _env_json_object(name: str) -> dict[str, str]:
    raw = str(os.getenv(name, "")).strip()
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        return {}
    if not isinstance(parsed, dict):
        return {}
    return {str(key): str(value) for key, value in parsed.items() if value}


PORT = max(1, _env_int("PORT", 3001))
DEBUG = _env_bool("FLASK_DEBUG", False)

# Базовый адрес, по которому внешний процессор достучится до колбэка.
# Пусто: адрес выводится из входящего запроса.
PUBLIC_BASE_URL = str(os.getenv("PUBLIC_BASE_URL", "")).strip().rstrip("/")
CALLBACK_PATH_TEMPLATE = "/api/callback/{job_id}"

# Маршрутизация воркфлоу: общий роутер n8n плюс точечные переопределения.
N8N_ROUTER_WEBHOOK = str(os.getenv("N8N_ROUTER_WEBHOOK", "")).strip()
WORKFLOWS = _env_list("WORKFLOWS", "IMAGE,VIDEO")
WORKFLOW_ROUTES = _env_json_object("WORKFLOW_ROUTES")

DISPATCH_TIMEOUT_S = max(0.5, _env_float("DISPATCH_TIMEOUT_S", 10.0))
DISPATCH_WORKERS = max(1, _env_int("DISPATCH_WORKERS", 4))
DISPATCH_FAILURE_MESSAGE = "Failed to start job."

# 0: записи живут до перезапуска процесса.
JOB_STORE_TTL_S = max(0, _env_int("JOB_STORE_TTL_S", 0))
MAX_ID_ATTEMPTS = 3

MAX_REQUEST_BYTES = max(1024, _env_int("MAX_REQUEST_BYTES", 1024 * 1024))
STATIC_DIR = str(os.getenv("STATIC_DIR", "public")).strip() or "public"

DEFAULT_FINAL_PROMPT = "Prompt not provided"
CALLBACK_TOO_LARGE_MESSAGE = "Callback payload too large."

LOG_LEVEL = str(os.getenv("LOG_LEVEL", "INFO")).strip().upper() or "INFO"
LOG_FORMAT = str(os.getenv("LOG_FORMAT", "json")).strip().lower()
if LOG_FORMAT not in {"json", "text"}:
    LOG_FORMAT = "json"
