import os


class ConfigError(RuntimeError):
    """Raised at startup when the server cannot run with the given settings."""


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default) == "1"


def _env_words(name: str) -> list[str]:
    raw = os.environ.get(name, "")
    return [w.strip().lower() for w in raw.split(",") if w.strip()]


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = _env_flag("TRUST_PROXY_HEADERS", "1")

    # Socket.IO (empty = pick per platform, see server.create_app)
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Game
    ROUND_DURATION_SEC = int(os.environ.get("ROUND_DURATION_SEC", "60"))
    MIN_PLAYERS = int(os.environ.get("MIN_PLAYERS", "2"))
    CORRECT_GUESS_POINTS = int(os.environ.get("CORRECT_GUESS_POINTS", "10"))
    ROUND_TIMER_ENABLED = _env_flag("ROUND_TIMER_ENABLED", "1")
    ROOM_CODE_LENGTH = int(os.environ.get("ROOM_CODE_LENGTH", "6"))

    # Empty = built-in word bank
    WORD_LIST = _env_words("WORD_LIST")
