"""Centralized constants for cardloop.

Scheduling arithmetic and queue defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Scheduler ----------
DEFAULT_EASE = 2.5
MIN_EASE = 1.3
MAX_EASE = 3.0
HARD_INTERVAL_FACTOR = 1.2

AGAIN_EASE_DELTA = -0.30
HARD_EASE_DELTA = -0.15
EASY_EASE_DELTA = 0.15

# ---------- Session Queue ----------
NEW_CARD_LIMIT = 10
LAST_REVIEWED_DECK_KEY = "cardloop:lastDeckId"

# ---------- Reporting ----------
STREAK_WINDOW_DAYS = 14
DEFAULT_FORECAST_DAYS = 7

# ---------- Deck Import ----------
AUDIO_DIR = "audio"

# ---------- Storage ----------
SQL_CHUNK_SIZE = 500
