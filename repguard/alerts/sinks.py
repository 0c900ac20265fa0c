import json, asyncio, logging, os
from dataclasses import asdict
from typing import Optional, Dict

import httpx

from repguard.alerts.base import AlertPayload

logger = logging.getLogger("repguard.alerts")


class LogSink:
    """Varsayılan sink: alert'i WARNING seviyesinde loglar."""
    async def send(self, payload: AlertPayload) -> None:
        logger.warning(
            "[ALERT] %s client=%s path=%s reason=%s meta=%s",
            payload.kind, payload.ip_hash, payload.path, payload.reason, payload.meta,
        )


class FileSink:
    """
    Satır başı JSON yazar. Bloklamamak için yazımı thread'e offload eder.
    """
    def __init__(self, path: str):
        self.path = path
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)

    def _write(self, line: str) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line + "\n")

    async def send(self, payload: AlertPayload) -> None:
        line = json.dumps(asdict(payload), ensure_ascii=False)
        await asyncio.to_thread(self._write, line)


class WebhookSink:
    """
    JSON POST eder; 2xx dışı yanıt hata sayılır (AlertManager loglar).
    """
    def __init__(self, url: str, headers: Optional[Dict[str, str]] = None, timeout_sec: float = 3.0):
        self.url = url
        self.headers = headers or {"Content-Type": "application/json"}
        self.timeout = timeout_sec

    async def send(self, payload: AlertPayload) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(self.url, headers=self.headers, json=asdict(payload))
            resp.raise_for_status()
