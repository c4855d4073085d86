import os
from pathlib import Path


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or "=" not in stripped:
                continue
            key, value = stripped.split("=", 1)
            key = key.strip()
            if not key or key in os.environ:
                continue
            cleaned = value.strip().strip('"').strip("'")
            os.environ[key] = cleaned
    except OSError:
        return


def _load_env() -> None:
    current = Path(__file__).resolve()
    for candidate in (current.parents[2] / ".env", Path.cwd() / ".env"):
        _load_env_file(candidate)


_load_env()


def _default_database_url() -> str:
    backend_root = Path(__file__).resolve().parents[2]
    dev_db = (backend_root / "hitbox.db").resolve()
    return f"sqlite:///{dev_db.as_posix()}"


def _normalize_cors(origins: str) -> list[str]:
    items: list[str] = []
    for raw in origins.split(","):
        value = raw.strip()
        if value and value not in items:
            items.append(value)
    return items


def _env_float(name: str, default: str) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        return float(default)


DATABASE_URL = os.getenv("DATABASE_URL", _default_database_url())
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "20"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "3600"))

SECRET_KEY = os.getenv("SECRET_KEY", os.getenv("JWT_SECRET", "change-me-in-prod"))
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

_DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:3001"
CORS_ORIGINS = _normalize_cors(os.getenv("CORS_ORIGINS", _DEFAULT_CORS_ORIGINS))

TWITCH_CLIENT_ID = os.getenv("TWITCH_CLIENT_ID", "")
TWITCH_CLIENT_SECRET = os.getenv("TWITCH_CLIENT_SECRET", "")
IGDB_TOKEN_URL = os.getenv("IGDB_TOKEN_URL", "https://id.twitch.tv/oauth2/token")
IGDB_API_URL = os.getenv("IGDB_API_URL", "https://api.igdb.com/v4")
IGDB_TOKEN_TIMEOUT_SECONDS = _env_float("IGDB_TOKEN_TIMEOUT_SECONDS", "15")
IGDB_REQUEST_TIMEOUT_SECONDS = _env_float("IGDB_REQUEST_TIMEOUT_SECONDS", "15")
IGDB_TOKEN_REFRESH_MARGIN_SECONDS = _env_float("IGDB_TOKEN_REFRESH_MARGIN_SECONDS", "60")
IGDB_TOKEN_MAX_ATTEMPTS = max(1, int(os.getenv("IGDB_TOKEN_MAX_ATTEMPTS", "3")))
IGDB_TOKEN_RETRY_DELAY_SECONDS = _env_float("IGDB_TOKEN_RETRY_DELAY_SECONDS", "2")
