from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

from dotenv import load_dotenv

StoreKind = Literal["memory", "redis"]


@dataclass(frozen=True, slots=True)
class Settings:
    store: StoreKind = "memory"
    redis_url: str = "redis://localhost:6379/0"
    code_length: int = 5
    code_max_attempts: int = 20
    max_grid_size: int = 10
    default_marks: tuple[str, str] = ("X", "O")

    # Finished rooms older than this are swept; None keeps them until both players leave.
    finished_room_ttl_s: float | None = None
    sweep_interval_s: float | None = None

    lock_timeout_ms: int = 2_000
    log_level: str = "INFO"


def _optional_float(name: str) -> float | None:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    return float(raw)


def _marks(raw: str) -> tuple[str, str]:
    parts = [p.strip() for p in raw.split(",") if p.strip()]
    if len(parts) != 2:
        raise ValueError(f"VANISHTOE_DEFAULT_MARKS must hold two comma-separated marks (got {raw!r})")
    return parts[0], parts[1]


def settings_from_env(*, dotenv: bool = True) -> Settings:
    if dotenv:
        load_dotenv(override=False)

    store = os.environ.get("VANISHTOE_STORE", "memory").strip().lower()
    if store not in ("memory", "redis"):
        raise ValueError(f"VANISHTOE_STORE must be 'memory' or 'redis' (got {store!r})")

    return Settings(
        store=store,  # type: ignore[arg-type]
        redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
        code_length=int(os.environ.get("VANISHTOE_CODE_LENGTH", "5")),
        code_max_attempts=int(os.environ.get("VANISHTOE_CODE_MAX_ATTEMPTS", "20")),
        max_grid_size=int(os.environ.get("VANISHTOE_MAX_GRID_SIZE", "10")),
        default_marks=_marks(os.environ.get("VANISHTOE_DEFAULT_MARKS", "X,O")),
        finished_room_ttl_s=_optional_float("VANISHTOE_FINISHED_ROOM_TTL_S"),
        sweep_interval_s=_optional_float("VANISHTOE_SWEEP_INTERVAL_S"),
        lock_timeout_ms=int(os.environ.get("VANISHTOE_LOCK_TIMEOUT_MS", "2000")),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    )
