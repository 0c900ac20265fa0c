from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Mapping, Optional

from repguard.core.errors import MalformedRequestDescriptor

UNKNOWN_SOURCE = "unknown"


class ThreatType(str, Enum):
    SCRIPT_INJECTION = "script-injection"
    SQL_INJECTION = "sql-injection"
    CSRF = "csrf"
    BRUTE_FORCE = "brute-force"
    FLOOD = "flood"
    MALWARE = "malware"


class Severity(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


DEFAULT_SEVERITY: Dict[ThreatType, Severity] = {
    ThreatType.SCRIPT_INJECTION: Severity.HIGH,
    ThreatType.SQL_INJECTION: Severity.HIGH,
    ThreatType.CSRF: Severity.MEDIUM,
    ThreatType.BRUTE_FORCE: Severity.HIGH,
    ThreatType.FLOOD: Severity.MEDIUM,
    ThreatType.MALWARE: Severity.CRITICAL,
}


class ReputationState(str, Enum):
    NEUTRAL = "neutral"
    BLOCKED = "blocked"
    ALLOWLISTED = "allowlisted"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class ThreatEvent:
    """Tek bir tehdit kaydı. Ham payload asla tutulmaz."""
    type: ThreatType
    severity: Severity
    source: str
    timestamp: float
    blocked: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.name.lower(),
            "source": self.source,
            "timestamp": self.timestamp,
            "blocked": self.blocked,
        }


def normalize_source(raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        return UNKNOWN_SOURCE
    return raw.strip()


@dataclass
class RequestDescriptor:
    """
    HTTP katmanının detection engine'e verdiği normalize istek.
    body/query/params pattern matching için etiketli üç metin bloğudur.
    """
    source: Optional[str] = None
    body: Any = ""
    query: Any = field(default_factory=dict)
    params: Any = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Any) -> "RequestDescriptor":
        if not isinstance(data, Mapping):
            raise MalformedRequestDescriptor(f"descriptor must be a mapping, got {type(data).__name__}")
        return cls(
            source=data.get("source"),
            body=data.get("body", ""),
            query=data.get("query") or {},
            params=data.get("params") or {},
        )


@dataclass(frozen=True)
class Decision:
    allow: bool
    http_status: int
    reason: Optional[ThreatType] = None
    source: str = UNKNOWN_SOURCE
    newly_blocked: bool = False


@dataclass
class Report:
    total_threats: int
    blocked_threats: int
    top_threat_types: List[ThreatType]
    risk_score: int
    risk_level: RiskLevel
    recommendations: List[str]
    generated_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_threats": self.total_threats,
            "blocked_threats": self.blocked_threats,
            "top_threat_types": [t.value for t in self.top_threat_types],
            "risk_score": self.risk_score,
            "risk_level": self.risk_level.value,
            "recommendations": list(self.recommendations),
            "generated_at": self.generated_at,
        }


@dataclass
class SecurityStatus:
    threats_today: int
    blocked_sources: int
    risk_level: RiskLevel

    def to_dict(self) -> Dict[str, Any]:
        return {
            "threats_today": self.threats_today,
            "blocked_sources": self.blocked_sources,
            "risk_level": self.risk_level.value,
        }
