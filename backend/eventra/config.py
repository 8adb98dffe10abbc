import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_DB_PATH = str(Path(__file__).resolve().parents[1] / "data" / "eventra.sqlite3")
LOOKUP_FAILURE_POLICIES = {"proceed", "reject"}


def parse_csv_env(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def parse_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def parse_positive_int_env(name: str, default: int) -> int:
    try:
        value = int(os.getenv(name, str(default)))
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass
class Settings:
    store_backend: str = "sqlite"
    db_path: str = DEFAULT_DB_PATH
    firebase_credentials_path: str = ""
    firebase_database_url: str = ""
    auth_provider: str = "local"
    auth_secret: str = "dev-insecure-secret-change-me"
    auth_token_ttl_hours: int = 24
    on_lookup_failure: str = "proceed"
    serialize_conflict_checks: bool = True
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    trusted_hosts: list[str] = field(default_factory=lambda: ["*"])
    default_page_limit: int = 20
    max_page_limit: int = 100

    def __post_init__(self) -> None:
        if self.on_lookup_failure not in LOOKUP_FAILURE_POLICIES:
            raise ValueError(
                f"on_lookup_failure must be one of {sorted(LOOKUP_FAILURE_POLICIES)}, got {self.on_lookup_failure!r}"
            )
        if self.store_backend not in {"sqlite", "firebase"}:
            raise ValueError(f"Unknown store backend: {self.store_backend!r}")
        if self.auth_provider not in {"local", "firebase"}:
            raise ValueError(f"Unknown auth provider: {self.auth_provider!r}")

    @property
    def fail_open(self) -> bool:
        return self.on_lookup_failure == "proceed"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            store_backend=os.getenv("EVENTRA_STORE_BACKEND", "sqlite").strip().lower(),
            db_path=os.getenv("EVENTRA_DB_PATH", DEFAULT_DB_PATH),
            firebase_credentials_path=os.getenv("FIREBASE_CREDENTIALS_PATH", "").strip(),
            firebase_database_url=os.getenv("FIREBASE_DATABASE_URL", "").strip(),
            auth_provider=os.getenv("AUTH_PROVIDER", "local").strip().lower(),
            auth_secret=os.getenv("AUTH_SECRET", "dev-insecure-secret-change-me"),
            auth_token_ttl_hours=parse_positive_int_env("AUTH_TOKEN_TTL_HOURS", 24),
            on_lookup_failure=os.getenv("ON_LOOKUP_FAILURE", "proceed").strip().lower(),
            serialize_conflict_checks=parse_bool_env("SERIALIZE_CONFLICT_CHECKS", True),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
            cors_origins=parse_csv_env("CORS_ORIGINS", "*"),
            trusted_hosts=parse_csv_env("TRUSTED_HOSTS", "*"),
            default_page_limit=parse_positive_int_env("DEFAULT_PAGE_LIMIT", 20),
            max_page_limit=parse_positive_int_env("MAX_PAGE_LIMIT", 100),
        )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
