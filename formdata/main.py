from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from .config import Settings, get_settings
from .dashboard import summarize
from .errors import InvalidGroupError, StoreWriteError
from .export import MEDIA_TYPES, download_filename, render
from .logs import setup_logging
from .models import (
    ClearResponse,
    DashboardSummary,
    HealthResponse,
    NonceResponse,
    SubmissionResponse,
)
from .normalize import normalize_submission
from .rules import NONCE_ACTIONS
from .security import issue_nonce, nonce_guard, require_admin
from .store import RecordStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json)
    logger.info("Storing form data under %s", settings.data_dir)
    yield


app = FastAPI(
    title="form-data-manager",
    description="Form submission capture into spreadsheet files",
    version="2.6.0",
    lifespan=lifespan,
)


@app.exception_handler(StoreWriteError)
async def store_write_failed(request: Request, exc: StoreWriteError):
    return JSONResponse(status_code=500, content={"detail": "Could not save form data"})


def open_store(settings: Settings, group: str) -> RecordStore:
    if group not in settings.allowed_groups():
        raise HTTPException(status_code=404, detail="Unknown form group")
    try:
        return RecordStore(settings.data_dir, group, settings.match_key)
    except InvalidGroupError:
        raise HTTPException(status_code=404, detail="Unknown form group")


def get_store(group: str, settings: Settings = Depends(get_settings)) -> RecordStore:
    return open_store(settings, group)


def get_default_store(settings: Settings = Depends(get_settings)) -> RecordStore:
    return open_store(settings, settings.default_group)


async def read_fields(request: Request) -> Dict[str, Any]:
    """Posted fields as identifier -> list of values ("name[]" keys lose the brackets)."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            payload = await request.json()
        except ValueError:
            raise HTTPException(status_code=422, detail="Body is not valid JSON")
        if not isinstance(payload, dict):
            raise HTTPException(status_code=422, detail="Body must be a JSON object")
        return payload

    form = await request.form()
    fields: Dict[str, List[str]] = {}
    for key, value in form.multi_items():
        if not isinstance(value, str):
            continue
        if key.endswith("[]"):
            key = key[:-2]
        fields.setdefault(key, []).append(value)
    return fields


async def handle_submission(request: Request, store: RecordStore, settings: Settings) -> SubmissionResponse:
    fields = await read_fields(request)
    logger.debug("Submission received for %s with fields %s", store.group, sorted(fields))
    record = normalize_submission(fields, settings.field_map, tz=settings.tzinfo())
    table, updated = await run_in_threadpool(store.submit, record)
    return SubmissionResponse(
        status="updated" if updated else "created",
        group=store.group,
        rows=len(table),
        record=record,
    )


@app.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True}


@app.post("/submissions", response_model=SubmissionResponse)
async def submit_default(
    request: Request,
    store: RecordStore = Depends(get_default_store),
    settings: Settings = Depends(get_settings),
):
    return await handle_submission(request, store, settings)


@app.post("/forms/{group}/submissions", response_model=SubmissionResponse)
async def submit(
    request: Request,
    store: RecordStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    return await handle_submission(request, store, settings)


@app.get(
    "/admin/forms/{group}/summary",
    response_model=DashboardSummary,
    dependencies=[Depends(require_admin)],
)
def summary(store: RecordStore = Depends(get_store)):
    return summarize(store)


@app.get(
    "/admin/nonce/{action}",
    response_model=NonceResponse,
    dependencies=[Depends(require_admin)],
)
def nonce(action: str, settings: Settings = Depends(get_settings)):
    if action not in NONCE_ACTIONS:
        raise HTTPException(status_code=404, detail="Unknown action")
    return {"action": action, "nonce": issue_nonce(settings, action)}


@app.post(
    "/admin/forms/{group}/download",
    dependencies=[Depends(require_admin), Depends(nonce_guard("download_table"))],
)
def download(
    store: RecordStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    fmt: str = Query(default="xlsx", alias="format", pattern="^(xlsx|xls|csv)$"),
):
    if not store.exists():
        raise HTTPException(status_code=404, detail="No submissions yet")

    content = render(store.load(), fmt)
    filename = download_filename(fmt, datetime.now(settings.tzinfo()))
    return Response(
        content=content,
        media_type=MEDIA_TYPES[fmt],
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
            "Expires": "0",
        },
    )


@app.post(
    "/admin/forms/{group}/clear",
    response_model=ClearResponse,
    dependencies=[Depends(require_admin), Depends(nonce_guard("clear_table"))],
)
def clear(store: RecordStore = Depends(get_store)):
    cleared = store.clear()
    return {"group": store.group, "cleared": cleared}
