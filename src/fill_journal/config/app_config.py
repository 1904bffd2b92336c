from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - Python <3.11
    import tomli as tomllib

STORAGE_BACKENDS = ("sqlite", "local")
CONFIG_ENV_VAR = "FILL_JOURNAL_CONFIG"


@dataclass(frozen=True)
class AppSettings:
    host: str
    port: int
    reload: bool
    storage: str
    db_path: Path
    local_path: Path
    user_id: str
    session_path: Path


@dataclass(frozen=True)
class AnalyticsSettings:
    timezone: str

    @property
    def tz(self) -> tzinfo | None:
        return resolve_timezone(self.timezone)


@dataclass(frozen=True)
class SyncSettings:
    provider: str
    fills_per_sync: int
    spread_days: int


@dataclass(frozen=True)
class DemoSettings:
    seed_on_empty: bool
    trade_count: int


@dataclass(frozen=True)
class AppConfig:
    app: AppSettings
    analytics: AnalyticsSettings
    sync: SyncSettings
    demo: DemoSettings


def load_app_config(path: Path | None = None, env: Mapping[str, str] | None = None) -> AppConfig:
    env = os.environ if env is None else env
    config_path = Path(path or env.get(CONFIG_ENV_VAR) or "config/app.toml")
    raw: Mapping[str, Any] = {}
    if config_path.exists():
        raw = tomllib.loads(config_path.read_text(encoding="utf-8"))

    app_raw = _section(raw, "app")
    analytics_raw = _section(raw, "analytics")
    sync_raw = _section(raw, "sync")
    demo_raw = _section(raw, "demo")

    storage = str(app_raw.get("storage", "sqlite")).strip().lower()
    if storage not in STORAGE_BACKENDS:
        raise ValueError(f"Unknown storage backend: {storage!r}")

    app = AppSettings(
        host=str(app_raw.get("host", "127.0.0.1")),
        port=_int_or_default(app_raw.get("port"), 8000),
        reload=bool(app_raw.get("reload", False)),
        storage=storage,
        db_path=Path(app_raw.get("db_path", "data/fill_journal.sqlite")),
        local_path=Path(app_raw.get("local_path", "data/fill_journal.json")),
        user_id=str(app_raw.get("user_id") or "local-user"),
        session_path=Path(app_raw.get("session_path", "data/session.json")),
    )

    timezone_name = str(analytics_raw.get("timezone", "local")).strip() or "local"
    resolve_timezone(timezone_name)
    analytics = AnalyticsSettings(timezone=timezone_name)

    sync = SyncSettings(
        provider=str(sync_raw.get("provider", "mock")).strip().lower() or "mock",
        fills_per_sync=_int_or_default(sync_raw.get("fills_per_sync"), 20),
        spread_days=_int_or_default(sync_raw.get("spread_days"), 21),
    )

    demo = DemoSettings(
        seed_on_empty=bool(demo_raw.get("seed_on_empty", True)),
        trade_count=_int_or_default(demo_raw.get("trade_count"), 50),
    )

    return AppConfig(app=app, analytics=analytics, sync=sync, demo=demo)


def resolve_timezone(name: str) -> tzinfo | None:
    """``"local"`` maps to ``None``: callers then use the process time zone."""
    cleaned = name.strip()
    if not cleaned or cleaned.lower() == "local":
        return None
    try:
        return ZoneInfo(cleaned)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown time zone: {name!r}") from exc


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if isinstance(value, Mapping):
        return value
    return {}


def _int_or_default(value: Any, default: int) -> int:
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
