from fastapi import APIRouter, Depends, Request
from starlette.responses import JSONResponse

from repguard.api.routes_security import require_admin
from repguard.security.ip_utils import get_client_info, parse_cidrs

router = APIRouter()


@router.get("/health")
def health():
    return JSONResponse({"status": "ok"})


@router.get("/version")
def version(request: Request):
    return {"app": "RepGuard", "version": request.app.version}


@router.get("/_debug/whoami")
async def whoami(request: Request):
    s = request.app.state.settings
    ip, ip_hash = get_client_info(request, parse_cidrs(s.TRUSTED_PROXY_CIDRS), s.IP_SALT)
    return {"ip": ip, "hash": ip_hash}


@router.get("/_debug/alerts", dependencies=[Depends(require_admin)])
async def list_recent_alerts(request: Request, limit: int = 50):
    am = getattr(request.app.state, "alerts", None)
    if am is None:
        return []
    return am.recent(limit=limit)
