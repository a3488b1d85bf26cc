"""
Central config: loads .env and exposes settings.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _get_int_set(name: str) -> frozenset[int]:
    v = os.getenv(name, "")
    out = set()
    for part in v.replace(";", ",").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            out.add(int(part))
        except ValueError:
            continue
    return frozenset(out)


# ───────────────────────────── Telegram ───────────────────────────── #

TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()

# Users allowed to grant camera permission. Empty = anyone who asks.
ALLOWED_USER_IDS = _get_int_set("ALLOWED_USER_IDS")


# ───────────────────────────── Mistral / OCR ───────────────────────────── #

# Passed explicitly into the vision client at startup (see main.py)
MISTRAL_API_KEY = os.getenv("MISTRAL_API_KEY", "").strip()
MISTRAL_MODEL = os.getenv("MISTRAL_MODEL", "pixtral-12b-latest").strip()

# Chat-completions endpoint is <base>/chat/completions
MISTRAL_BASE_URL = os.getenv("MISTRAL_BASE_URL", "https://api.mistral.ai/v1").strip()


# ───────────────────────────── Logging ───────────────────────────── #

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper().strip() or "INFO"
