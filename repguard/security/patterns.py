# repguard/security/patterns.py
from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Any, FrozenSet, List, Mapping, Tuple

from repguard.security.config import DEFAULT_MAX_PAYLOAD_BYTES
from repguard.security.models import RequestDescriptor, ThreatType


@dataclass(frozen=True)
class SignatureRule:
    name: str
    threat_type: ThreatType
    regex: re.Pattern

    def match(self, payload: str) -> bool:
        return self.regex.search(payload) is not None


def _rule(name: str, threat_type: ThreatType, pattern: str) -> SignatureRule:
    return SignatureRule(name, threat_type, re.compile(pattern, re.IGNORECASE))


# Sabit, sıralı kural seti. Quantifier'lar sınırlı tutulur (ReDoS'a karşı).
SIGNATURE_RULES: Tuple[SignatureRule, ...] = (
    _rule("script_tag", ThreatType.SCRIPT_INJECTION, r"<\s*script\b"),
    _rule("javascript_uri", ThreatType.SCRIPT_INJECTION, r"\bjavascript\s{0,8}:"),
    _rule("event_handler_attr", ThreatType.SCRIPT_INJECTION, r"<[a-z][^<>]{0,256}?\bon[a-z]{2,32}\s{0,8}="),
    _rule("sql_tautology_quoted", ThreatType.SQL_INJECTION, r"'\s{0,8}or\s{1,8}'[^']{0,64}'\s{0,8}=\s{0,8}'"),
    _rule("sql_tautology_numeric", ThreatType.SQL_INJECTION, r"'\s{0,8}or\s{1,8}(\d{1,16})\s{0,8}=\s{0,8}\1\b"),
    _rule("union_select", ThreatType.SQL_INJECTION, r"\bunion(?:\s{1,8}all)?\s{1,8}select\b"),
    _rule("drop_table", ThreatType.SQL_INJECTION, r"\bdrop\s{1,8}table\b"),
    _rule("insert_into", ThreatType.SQL_INJECTION, r"\binsert\s{1,8}into\b"),
    _rule("update_set", ThreatType.SQL_INJECTION, r"\bupdate\s{1,8}[\w.`\"\[\]]{1,128}\s{1,8}set\b"),
    _rule("delete_from", ThreatType.SQL_INJECTION, r"\bdelete\s{1,8}from\b"),
)


def _flatten(value: Any) -> str:
    # string değerler escape edilmez; matcher saldırganın gönderdiği metni görür
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    if isinstance(value, Mapping):
        return "&".join(
            f"{k}={_flatten(value[k])}" for k in sorted(value, key=str)
        )
    if isinstance(value, (set, frozenset)):
        return ",".join(sorted(_flatten(v) for v in value))
    if isinstance(value, (list, tuple)):
        return ",".join(_flatten(v) for v in value)
    return str(value)


def serialize_descriptor(descriptor: RequestDescriptor) -> str:
    """
    body/query/params bloklarını etiketli kanonik metne çevirir:

        body: <metin>
        query: k=v1,v2&k2=v
        params: path=/x

    Anahtarlar sıralanır (sıra eşleşmeyi etkilemesin). Değerler arasındaki
    ayraçlar boşluk değildir, bu yüzden iki ayrı değer birleşip tek bir
    imza oluşturmaz.
    """
    return "\n".join(
        f"{label}: {_flatten(getattr(descriptor, label))}"
        for label in ("body", "query", "params")
    )


class PatternMatcher:
    """
    Bilinen imzalara dayalı sınıflandırıcı. Yan etkisi yoktur.
    Kurallara uymayan yeni saldırılar sınıflandırılmaz (anomaly detection değil).
    """

    def __init__(self, rules: Tuple[SignatureRule, ...] = SIGNATURE_RULES,
                 max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES):
        self.rules = tuple(rules)
        self.max_payload_bytes = int(max_payload_bytes)

    def _bound(self, payload: str) -> str:
        if len(payload) * 4 <= self.max_payload_bytes:
            return payload
        raw = payload.encode("utf-8")
        if len(raw) <= self.max_payload_bytes:
            return payload
        return raw[: self.max_payload_bytes].decode("utf-8", "ignore")

    def matches(self, payload: str) -> List[SignatureRule]:
        text = self._bound(payload or "")
        return [r for r in self.rules if r.match(text)]

    def classify(self, payload: str) -> FrozenSet[ThreatType]:
        return frozenset(r.threat_type for r in self.matches(payload))
