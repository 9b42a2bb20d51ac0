# familybrief/main.py
import os
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

# Only load .env locally (don't rely on it in Cloud Run)
if os.getenv("K_SERVICE") is None:
    from dotenv import load_dotenv
    load_dotenv()

from .brief_runner import generate_weekly_brief, run_weekly_briefs
from .errors import BriefAuthError, BriefInputError, build_error_notice
from .logger import logger
from .scheduler import start_scheduler
from .scheduler import tick as scheduler_tick
from .store import get_store
from .summarizer import summarize_weekly_inputs

ADMIN_ROLES = {"admin", "system_admin", "district_admin", "school_admin"}

app = FastAPI(title="familybrief")

origins_env = os.getenv("ALLOWED_ORIGINS", "*")
origins = [o.strip() for o in origins_env.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class RunRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    week_start: Optional[str] = Field(None, alias="weekStart")
    dry_run: bool = Field(False, alias="dryRun")
    limit: Optional[int] = None
    trigger: str = "manual"


def _store():
    store = get_store()
    try:
        yield store
    finally:
        store.close()


def assert_admin_role(role: Optional[str]) -> str:
    role = (role or "").strip().lower()
    if role not in ADMIN_ROLES:
        raise BriefAuthError("Admin role required")
    return role


@app.exception_handler(BriefInputError)
async def input_error_handler(request: Request, exc: BriefInputError):
    notice = build_error_notice(exc, {"op": request.url.path})
    logger.info(f"[{notice.code}] {notice.debug} (ref={notice.support_id})")
    return JSONResponse(notice.as_json(), status_code=notice.status_code)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    notice = build_error_notice(exc, {"op": request.url.path})
    logger.error(f"[{notice.code}] {notice.debug} (ref={notice.support_id})")
    return JSONResponse(notice.as_json(), status_code=notice.status_code)


@app.on_event("startup")
def on_startup():
    if not os.getenv("HASURA_GRAPHQL_URL"):
        from .db import init_db
        init_db()
    if os.getenv("ENABLE_INPROC_SCHEDULER") == "1":
        start_scheduler()


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.post("/api/weekly-briefs/generate-all")
def generate_all(
    req: Optional[RunRequest] = None,
    x_hasura_role: Optional[str] = Header(None),
    x_hasura_user_id: Optional[str] = Header(None),
    x_hasura_organization_id: Optional[str] = Header(None),
    x_hasura_school_id: Optional[str] = Header(None),
    store=Depends(_store),
):
    role = assert_admin_role(x_hasura_role)
    req = req or RunRequest()
    out = run_weekly_briefs(
        store,
        week_start=req.week_start,
        dry_run=req.dry_run,
        limit=req.limit,
        trigger=req.trigger,
        scope={"organization_id": x_hasura_organization_id, "school_id": x_hasura_school_id},
        created_by_user_id=x_hasura_user_id,
        created_by_role=role,
    )
    return {"ok": True, **out}


@app.post("/api/weekly-briefs/generate")
def generate_one(payload: Dict[str, Any] = Body(...), store=Depends(_store)):
    return {"success": True, "data": generate_weekly_brief(store, payload)}


@app.post("/api/weekly-briefs/summarize")
def summarize(payload: Dict[str, Any] = Body(...)):
    return {"success": True, "summary": summarize_weekly_inputs(payload)}


@app.post("/api/weekly-briefs/{brief_id}/opened")
def mark_opened(brief_id: str, store=Depends(_store)):
    if not store.mark_brief_opened(brief_id):
        raise HTTPException(status_code=404, detail="brief not found")
    return {"ok": True}


# Cloud Scheduler trigger (set CRON_TOKEN env var; pass ?token= or X-Cron-Token header)
@app.post("/cron/weekly-briefs")
def cron_weekly_briefs(
    token: Optional[str] = Query(None),
    x_cron_token: Optional[str] = Header(None),
):
    expected = os.getenv("CRON_TOKEN")
    provided = token or x_cron_token
    if not expected or provided != expected:
        raise HTTPException(status_code=401, detail="unauthorized")
    return {"triggered": scheduler_tick()}
