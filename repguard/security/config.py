# repguard/security/config.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple

from repguard.core.errors import ConfigurationError
from repguard.security.ratelimit import RateLimit

DEFAULT_ESCALATION_WINDOW = 300.0    # 5 dk
DEFAULT_ESCALATION_THRESHOLD = 5
DEFAULT_SCORING_WINDOW = 86400.0     # 24 saat
DEFAULT_MAX_PAYLOAD_BYTES = 64 * 1024


@dataclass(frozen=True)
class DetectionConfig:
    """
    Detection engine ayarları. Tüm süreler saniye cinsindendir.

    retention=None ise ledger olayları process ömrü boyunca tutulur.
    rate_limits boşsa rate limiting kapalıdır.
    """
    escalation_window: float = DEFAULT_ESCALATION_WINDOW
    escalation_threshold: int = DEFAULT_ESCALATION_THRESHOLD
    scoring_window: float = DEFAULT_SCORING_WINDOW
    max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES
    retention: Optional[float] = None
    rate_limits: Tuple[RateLimit, ...] = ()

    def __post_init__(self) -> None:
        if self.escalation_window <= 0:
            raise ConfigurationError(f"escalation_window must be > 0, got {self.escalation_window!r}")
        if self.escalation_threshold < 1:
            raise ConfigurationError(f"escalation_threshold must be >= 1, got {self.escalation_threshold!r}")
        if self.scoring_window <= 0:
            raise ConfigurationError(f"scoring_window must be > 0, got {self.scoring_window!r}")
        if self.scoring_window < self.escalation_window:
            raise ConfigurationError(
                f"scoring_window ({self.scoring_window}s) must be >= escalation_window ({self.escalation_window}s)"
            )
        if self.max_payload_bytes < 1:
            raise ConfigurationError(f"max_payload_bytes must be >= 1, got {self.max_payload_bytes!r}")
        if self.retention is not None and self.retention < self.scoring_window:
            raise ConfigurationError(
                f"retention ({self.retention}s) must be >= scoring_window ({self.scoring_window}s)"
            )
