import os
from functools import lru_cache
from pathlib import Path

DEV_SESSION_SECRET = "dev-insecure-session-secret-change-me"


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        session_secret: str,
        token_max_age_days: int,
        cookie_secure: bool,
        request_timeout_secs: float,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.session_secret = session_secret
        self.token_max_age_days = token_max_age_days
        self.cookie_secure = cookie_secure
        self.request_timeout_secs = request_timeout_secs
        self.log_level = log_level

    @property
    def uses_dev_secret(self) -> bool:
        return self.session_secret == DEV_SESSION_SECRET


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "ledger.db"
    database_url = os.getenv("LEDGER_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("LEDGER_TIMEZONE", "UTC")
    session_secret = os.getenv("LEDGER_SESSION_SECRET") or DEV_SESSION_SECRET
    token_max_age_days = int(os.getenv("LEDGER_TOKEN_MAX_AGE_DAYS", "7"))
    cookie_secure = _env_flag("LEDGER_COOKIE_SECURE")
    request_timeout_secs = float(os.getenv("LEDGER_REQUEST_TIMEOUT_SECS", "10"))
    log_level = os.getenv("LEDGER_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        timezone=timezone,
        session_secret=session_secret,
        token_max_age_days=token_max_age_days,
        cookie_secure=cookie_secure,
        request_timeout_secs=request_timeout_secs,
        log_level=log_level,
    )
