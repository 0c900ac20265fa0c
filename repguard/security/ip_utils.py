from __future__ import annotations
import ipaddress
import hashlib
from typing import List, Tuple
from fastapi import Request

from repguard.security.models import UNKNOWN_SOURCE


def parse_cidrs(csv: str) -> List[ipaddress._BaseNetwork]:
    """
    Parse a comma-separated CIDR list into ipaddress network objects.
    Invalid tokens are ignored.
    """
    nets: List[ipaddress._BaseNetwork] = []
    for part in (csv or "").split(","):
        p = part.strip()
        if not p:
            continue
        try:
            nets.append(ipaddress.ip_network(p, strict=False))
        except ValueError:
            pass
    return nets


def _is_trusted(ip: str, trusted: List[ipaddress._BaseNetwork]) -> bool:
    try:
        ipobj = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return any(ipobj in net for net in trusted)


def _valid_ip(ip: str) -> bool:
    try:
        ipaddress.ip_address(ip)
        return True
    except ValueError:
        return False


def hash_ip(ip: str, salt: str = "") -> str:
    return hashlib.sha256((salt + ip).encode("utf-8")).hexdigest()[:16]


def get_client_ip(request: Request, trusted: List[ipaddress._BaseNetwork]) -> str:
    """
    Socket IP'si trusted proxy ise X-Forwarded-For'daki ilk IP kullanılır.
    Yoksa/parse edilemezse sentetik "unknown" kaynağı döner.
    """
    remote = request.client.host if request.client and request.client.host else ""
    xff = request.headers.get("x-forwarded-for")
    if xff and _is_trusted(remote, trusted):
        first = xff.split(",")[0].strip()
        if _valid_ip(first):
            return first
    return remote if _valid_ip(remote) else UNKNOWN_SOURCE


def get_client_info(request: Request, trusted: List[ipaddress._BaseNetwork], salt: str = "") -> Tuple[str, str]:
    ip = get_client_ip(request, trusted)
    return ip, hash_ip(ip, salt)
