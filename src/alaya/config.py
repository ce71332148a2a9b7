# ABOUTME: Process configuration for Alaya, read from environment variables and an optional .env.
# ABOUTME: Database location, bind address, library root, signup toggle, and API key.

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from alaya.db.connection import DEFAULT_DB_PATH

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def is_truthy(value: str | None) -> bool:
    """Interpret an environment flag. Unset or unrecognised values are false."""
    return value is not None and value.strip().lower() in _TRUTHY


def load_env_file() -> bool:
    """Load a .env file found from the working directory upward.

    Variables already set in the process environment are not overridden.
    """
    return load_dotenv(find_dotenv(usecwd=True))


def database_path_from_url(url: str) -> Path:
    """Turn ``sqlite:alaya.db`` / ``sqlite:///path`` / a bare path into a Path."""
    for prefix in ("sqlite:///", "sqlite://", "sqlite:"):
        if url.startswith(prefix):
            url = url[len(prefix):]
            break
    return Path(url)


@dataclass
class Settings:
    db_path: Path = DEFAULT_DB_PATH
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    library_path: Path = Path(".")
    signups_disabled: bool = False
    openai_api_key: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from the environment.

        ALAYA_DB wins over DATABASE_URL; an empty OPENAI_API_KEY counts as unset.
        """
        if environ is None:
            load_env_file()
        env = os.environ if environ is None else environ

        db_value = env.get("ALAYA_DB") or env.get("DATABASE_URL")
        db_path = database_path_from_url(db_value) if db_value else DEFAULT_DB_PATH

        try:
            port = int(env.get("PORT", DEFAULT_PORT))
        except ValueError as exc:
            raise ValueError(f"PORT must be an integer, got {env.get('PORT')!r}") from exc

        return cls(
            db_path=db_path,
            host=env.get("HOST", DEFAULT_HOST),
            port=port,
            library_path=Path(env.get("LIBRARY_PATH", ".")),
            signups_disabled=is_truthy(env.get("DISABLE_SIGNUPS")),
            openai_api_key=env.get("OPENAI_API_KEY") or None,
        )
