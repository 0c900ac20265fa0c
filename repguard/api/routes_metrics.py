from fastapi import APIRouter, Response, Request
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

router = APIRouter()


@router.get("/metrics")
async def metrics(request: Request):
    m = request.app.state.metrics
    engine = request.app.state.engine
    # Gauge'ler scrape anında ledger'dan yeniden hesaplanır
    m.blocked_sources.set(len(engine.reputation.blocked_sources()))
    m.risk_score.set(engine.scorer.score())
    return Response(content=generate_latest(m.registry), media_type=CONTENT_TYPE_LATEST)
