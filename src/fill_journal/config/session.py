from __future__ import annotations

import json
from dataclasses import asdict, dataclass, replace
from pathlib import Path

THEMES = ("light", "dark")


@dataclass(frozen=True)
class SessionState:
    """Per-user session choices, passed explicitly to whatever needs them."""

    active_account_id: str | None = None
    theme: str = "dark"


def load_session(path: Path) -> SessionState:
    if not path.exists():
        return SessionState()
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return SessionState()
    if not isinstance(payload, dict):
        return SessionState()
    account = payload.get("active_account_id")
    theme = payload.get("theme")
    return SessionState(
        active_account_id=str(account) if account else None,
        theme=theme if theme in THEMES else "dark",
    )


def save_session(path: Path, state: SessionState) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(state), indent=2, sort_keys=True) + "\n", encoding="utf-8")


def with_active_account(state: SessionState, account_id: str | None) -> SessionState:
    return replace(state, active_account_id=account_id or None)


def with_theme(state: SessionState, theme: str) -> SessionState:
    if theme not in THEMES:
        raise ValueError(f"Unknown theme: {theme!r}")
    return replace(state, theme=theme)
