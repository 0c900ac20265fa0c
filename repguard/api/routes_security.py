from __future__ import annotations
import secrets
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from repguard.security.engine import ThreatEngine

router = APIRouter(prefix="/_admin/security", tags=["security"])


class EventOut(BaseModel):
    type: str
    severity: str
    source: str
    timestamp: float
    blocked: bool


class EventsPage(BaseModel):
    total: int
    items: List[EventOut]


class ReportOut(BaseModel):
    total_threats: int
    blocked_threats: int
    top_threat_types: List[str]
    risk_score: int
    risk_level: str
    recommendations: List[str]
    generated_at: float


class StatusOut(BaseModel):
    threats_today: int
    blocked_sources: int
    risk_level: str


class SourceState(BaseModel):
    source: str
    state: str


# Operatör guard'ı: X-Admin-Token == ADMIN_TOKEN (boşsa admin uçları kapalı)
async def require_admin(request: Request):
    expected = request.app.state.settings.ADMIN_TOKEN
    given = request.headers.get("X-Admin-Token", "")
    if expected and secrets.compare_digest(given, expected):
        return True
    raise HTTPException(status_code=403, detail="admin only")


def get_engine(request: Request) -> ThreatEngine:
    return request.app.state.engine


@router.get("/report", response_model=ReportOut, dependencies=[Depends(require_admin)])
async def report(engine: ThreatEngine = Depends(get_engine)):
    return engine.reports.generate().to_dict()


@router.get("/status", response_model=StatusOut, dependencies=[Depends(require_admin)])
async def status(engine: ThreatEngine = Depends(get_engine)):
    return engine.reports.status().to_dict()


@router.get("/events", response_model=EventsPage, dependencies=[Depends(require_admin)])
async def events(
    source: Optional[str] = None,
    since: Optional[float] = Query(None, gt=0, description="Trailing window in seconds"),
    limit: int = Query(100, ge=1, le=1000),
    engine: ThreatEngine = Depends(get_engine),
):
    rows = engine.ledger.query(source, since) if source else engine.ledger.all(since)
    # en yeniler
    items = [EventOut(**e.to_dict()) for e in rows[-limit:]]
    return EventsPage(total=len(rows), items=items)


@router.get("/blocked", response_model=List[str], dependencies=[Depends(require_admin)])
async def blocked(engine: ThreatEngine = Depends(get_engine)):
    return engine.reputation.blocked_sources()


@router.get("/allowlist", response_model=List[str], dependencies=[Depends(require_admin)])
async def list_allowlist(engine: ThreatEngine = Depends(get_engine)):
    return engine.reputation.allowlisted_sources()


@router.put("/allowlist/{source}", response_model=SourceState, dependencies=[Depends(require_admin)])
async def add_allowlist(source: str, engine: ThreatEngine = Depends(get_engine)):
    engine.reputation.allowlist(source)
    return SourceState(source=source, state=engine.reputation.state(source).value)


@router.delete("/allowlist/{source}", response_model=SourceState, dependencies=[Depends(require_admin)])
async def remove_allowlist(source: str, engine: ThreatEngine = Depends(get_engine)):
    if not engine.reputation.remove_from_allowlist(source):
        raise HTTPException(status_code=404, detail="source not allowlisted")
    return SourceState(source=source, state=engine.reputation.state(source).value)
