from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import asdict
from functools import lru_cache
from typing import Any, Iterator

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse

from fill_journal.config.app_config import AppConfig, load_app_config
from fill_journal.config.session import SessionState, load_session, save_session, with_active_account, with_theme
from fill_journal.filters import ALL, FilterState, apply_trade_filters, parse_date, symbols_in
from fill_journal.ingest.csv_fills import build_csv_template, file_digest, import_fills, parse_fills_csv
from fill_journal.ingest.sync import build_provider, run_account_sync
from fill_journal.metrics.report import build_report, fill_payload, trade_payload
from fill_journal.models import Account, FillAnnotation, JournalEntry
from fill_journal.reconstruct.trades import derive_trades
from fill_journal.sample_fills import seed_demo_if_empty
from fill_journal.storage.base import DEFAULT_FILL_LIMIT, StorageRepository
from fill_journal.storage.repository import open_repository
from fill_journal.web.schemas import (
    AccountRequest,
    AnnotationRequest,
    CsvImportRequest,
    JournalEntryRequest,
    SessionRequest,
)

logger = logging.getLogger("fill_journal.web")

app = FastAPI(title="Fill Journal")

_STORE_LOCK = threading.RLock()


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    return load_app_config()


@lru_cache(maxsize=1)
def get_repository() -> StorageRepository:
    config = get_config()
    repo = open_repository(config)
    if config.demo.seed_on_empty:
        seed_demo_if_empty(repo, config.demo.trade_count)
    return repo


def reset_app_state() -> None:
    """Drop cached config and repository so the next request reloads them."""
    get_repository.cache_clear()
    get_config.cache_clear()


@contextmanager
def _store() -> Iterator[StorageRepository]:
    # One connection is shared by the worker threads; serialize access to it.
    with _STORE_LOCK:
        yield get_repository()


def _session() -> SessionState:
    return load_session(get_config().app.session_path)


def _filters_from_request(request: Request) -> FilterState:
    params = request.query_params
    account_id = params.get("account_id")
    if account_id is None:
        account_id = _session().active_account_id
    try:
        return FilterState(
            start_date=parse_date(params.get("start")),
            end_date=parse_date(params.get("end")),
            symbol=params.get("symbol") or ALL,
            market_type=params.get("market_type") or ALL,
            side=params.get("side") or ALL,
            search=(params.get("search") or "").strip(),
            account_id=account_id or None,
            order_type=params.get("order_type") or ALL,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _int_param(request: Request, name: str, default: int) -> int:
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {raw!r}") from exc
    if value < 0:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {raw!r}")
    return value


@app.get("/api/fills")
def fills_api(request: Request) -> dict[str, Any]:
    filters = _filters_from_request(request)
    limit = _int_param(request, "limit", DEFAULT_FILL_LIMIT)
    offset = _int_param(request, "offset", 0)
    with _store() as repo:
        fills = repo.get_fills(filters, limit=limit, offset=offset)
    return {"fills": [fill_payload(fill) for fill in fills], "count": len(fills)}


@app.get("/api/trades")
def trades_api(request: Request) -> list[dict[str, Any]]:
    filters = _filters_from_request(request)
    with _store() as repo:
        fills = repo.get_fills(filters)
    trades = apply_trade_filters(derive_trades(fills), filters, get_config().analytics.tz)
    return [trade_payload(trade) for trade in trades]


@app.get("/api/summary")
def summary_api(request: Request) -> dict[str, Any]:
    filters = _filters_from_request(request)
    with _store() as repo:
        fills = repo.get_fills(filters)
    return build_report(fills, filters, get_config().analytics.tz)


@app.get("/api/symbols")
def symbols_api(request: Request) -> list[str]:
    filters = _filters_from_request(request)
    with _store() as repo:
        fills = repo.get_fills(filters)
    return symbols_in(fills)


@app.get("/api/import/template", response_class=PlainTextResponse)
def import_template_api() -> str:
    return build_csv_template()


@app.post("/api/import/csv")
def import_csv_api(body: CsvImportRequest) -> dict[str, Any]:
    result = parse_fills_csv(body.text)
    if result.errors:
        raise HTTPException(
            status_code=400,
            detail={"errors": [asdict(error) for error in result.errors]},
        )
    if not result.fills:
        raise HTTPException(status_code=400, detail="No fills found in CSV.")
    account_id = body.account_id or _session().active_account_id
    with _store() as repo:
        record, summary = import_fills(
            repo,
            result.fills,
            source_type="csv",
            source_label=body.source_label,
            file_hash=file_digest(body.text),
            account_id=account_id,
        )
    return {"import_id": record.import_id, "inserted": summary.inserted, "skipped": summary.skipped}


@app.get("/api/fills/{fill_id}/annotation")
def get_annotation_api(fill_id: str) -> dict[str, Any]:
    with _store() as repo:
        annotation = repo.get_fill_annotation(fill_id)
    if annotation is None:
        raise HTTPException(status_code=404, detail="Annotation not found.")
    return _annotation_payload(annotation)


@app.put("/api/fills/{fill_id}/annotation")
def put_annotation_api(fill_id: str, body: AnnotationRequest) -> dict[str, Any]:
    with _store() as repo:
        annotation = repo.upsert_fill_annotation(fill_id, note=body.note, tags=body.tags)
    return _annotation_payload(annotation)


@app.get("/api/journal")
def journal_list_api() -> list[dict[str, Any]]:
    with _store() as repo:
        entries = repo.list_journal_entries()
    return [_journal_payload(entry) for entry in entries]


@app.post("/api/journal", status_code=201)
def journal_create_api(body: JournalEntryRequest) -> dict[str, Any]:
    entry = JournalEntry(entry_id=None, **body.model_dump())
    with _store() as repo:
        saved = repo.upsert_journal_entry(entry)
    return _journal_payload(saved)


@app.put("/api/journal/{entry_id}")
def journal_update_api(entry_id: str, body: JournalEntryRequest) -> dict[str, Any]:
    with _store() as repo:
        _require_journal_entry(repo, entry_id)
        saved = repo.upsert_journal_entry(JournalEntry(entry_id=entry_id, **body.model_dump()))
    return _journal_payload(saved)


@app.delete("/api/journal/{entry_id}")
def journal_delete_api(entry_id: str) -> dict[str, str]:
    with _store() as repo:
        _require_journal_entry(repo, entry_id)
        repo.delete_journal_entry(entry_id)
    return {"status": "deleted", "entry_id": entry_id}


@app.get("/api/accounts")
def accounts_api() -> list[dict[str, Any]]:
    with _store() as repo:
        accounts = repo.get_accounts()
    return [_account_payload(account) for account in accounts]


@app.post("/api/accounts", status_code=201)
def add_account_api(body: AccountRequest) -> dict[str, Any]:
    with _store() as repo:
        try:
            account = repo.add_account(body.wallet_address.strip(), chain=body.chain, label=body.label)
        except ValueError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _account_payload(account)


@app.post("/api/accounts/{account_id}/sync")
def sync_account_api(account_id: str) -> dict[str, Any]:
    config = get_config()
    try:
        provider = build_provider(
            config.sync.provider,
            count=config.sync.fills_per_sync,
            spread_days=config.sync.spread_days,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    with _store() as repo:
        account = repo.get_account(account_id)
        if account is None:
            raise HTTPException(status_code=404, detail="Account not found.")
        try:
            result = run_account_sync(account, provider, repo)
        except Exception as exc:
            raise HTTPException(status_code=502, detail=f"Sync failed: {exc}") from exc
        account = repo.get_account(account_id)
    return {
        "inserted": result.inserted,
        "skipped": result.skipped,
        "account": _account_payload(account) if account else None,
    }


@app.get("/api/session")
def session_api() -> dict[str, Any]:
    return asdict(_session())


@app.put("/api/session")
def update_session_api(body: SessionRequest) -> dict[str, Any]:
    state = _session()
    if "active_account_id" in body.model_fields_set:
        state = with_active_account(state, body.active_account_id)
    if body.theme is not None:
        try:
            state = with_theme(state, body.theme)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    save_session(get_config().app.session_path, state)
    return asdict(state)


@app.delete("/api/data")
def reset_data_api() -> dict[str, str]:
    with _store() as repo:
        repo.reset()
    save_session(get_config().app.session_path, with_active_account(_session(), None))
    return {"status": "cleared"}


def _require_journal_entry(repo: StorageRepository, entry_id: str) -> None:
    if not any(entry.entry_id == entry_id for entry in repo.list_journal_entries()):
        raise HTTPException(status_code=404, detail="Journal entry not found.")


def _annotation_payload(annotation: FillAnnotation) -> dict[str, Any]:
    return {
        "annotation_id": annotation.annotation_id,
        "fill_id": annotation.fill_id,
        "note": annotation.note,
        "tags": list(annotation.tags),
        "created_at": annotation.created_at.isoformat(),
        "updated_at": annotation.updated_at.isoformat() if annotation.updated_at else None,
    }


def _journal_payload(entry: JournalEntry) -> dict[str, Any]:
    payload = asdict(entry)
    payload["created_at"] = entry.created_at.isoformat() if entry.created_at else None
    return payload


def _account_payload(account: Account) -> dict[str, Any]:
    payload = asdict(account)
    for key in ("created_at", "last_synced_at", "updated_at"):
        value = payload[key]
        payload[key] = value.isoformat() if value is not None else None
    return payload


def main() -> None:
    import uvicorn

    app_config = load_app_config()
    uvicorn.run(
        "fill_journal.web.app:app",
        host=app_config.app.host,
        port=app_config.app.port,
        reload=app_config.app.reload,
    )


if __name__ == "__main__":
    main()
