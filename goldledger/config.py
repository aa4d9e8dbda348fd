"""Runtime settings read from the environment."""

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from goldledger.exceptions import ConfigurationError

DEFAULT_DB_PATH = Path.home() / ".goldledger" / "goldledger.db"


def _number(env: Mapping[str, str], name: str, default: float, cast: type) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(name, f"expected a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(name, f"must be greater than 0, got {raw!r}")
    return value


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    db_path: Path = DEFAULT_DB_PATH
    api_base: str = "http://localhost:4000"
    execute_timeout: float = 30.0
    http_timeout: float = 10.0
    fetch_limit: int = 200
    currency_symbol: str = "RM"

    @classmethod
    def from_environment(cls, env: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if env is None else env
        db = env.get("GOLDLEDGER_DB", "").strip()
        api_base = env.get("GOLDLEDGER_API_BASE", "").strip().rstrip("/")
        return cls(
            db_path=Path(db).expanduser() if db else DEFAULT_DB_PATH,
            api_base=api_base or "http://localhost:4000",
            execute_timeout=_number(env, "GOLDLEDGER_EXECUTE_TIMEOUT", 30.0, float),
            http_timeout=_number(env, "GOLDLEDGER_HTTP_TIMEOUT", 10.0, float),
            fetch_limit=_number(env, "GOLDLEDGER_FETCH_LIMIT", 200, int),
            currency_symbol=env.get("GOLDLEDGER_CURRENCY_SYMBOL", "").strip() or "RM",
        )
