from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Tuple

from repguard.security.config import DetectionConfig
from repguard.security.models import ThreatType
from repguard.security.ratelimit import RateLimit


def _csv(raw: str) -> Tuple[str, ...]:
    return tuple(p.strip() for p in (raw or "").split(",") if p.strip())


class Settings(BaseSettings):
    APP_ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    IP_SALT: str = "change_me"
    TRUSTED_PROXY_CIDRS: str = "127.0.0.1/32"
    ALLOWLIST_IPS: str = ""  # comma-separated raw IPs

    # Guard middleware
    GUARD_ENABLED: bool = True
    GUARD_EXCLUDE_PATHS: str = "/metrics,/health,/_admin"
    MAX_REQUEST_BYTES: int = 10 * 1024 * 1024
    SECURITY_HEADERS_ENABLED: bool = True

    # Detection engine
    ESCALATION_WINDOW_SEC: float = 300.0
    ESCALATION_THRESHOLD: int = 5
    SCORING_WINDOW_SEC: float = 86400.0
    PAYLOAD_MAX_BYTES: int = 64 * 1024
    LEDGER_RETENTION_SEC: float = 0.0  # 0 = process lifetime
    RETENTION_SWEEP_SEC: int = 300

    # Rate limiting (kaynak başına sabit pencere)
    RATE_LIMIT_ENABLED: bool = True
    RATE_GENERAL_MAX: int = 100
    RATE_GENERAL_WINDOW_SEC: float = 900.0
    RATE_API_MAX: int = 60
    RATE_API_WINDOW_SEC: float = 60.0
    RATE_API_PATHS: str = "/api"
    RATE_AUTH_MAX: int = 5
    RATE_AUTH_WINDOW_SEC: float = 900.0
    RATE_AUTH_PATHS: str = "/api/auth,/auth,/login"

    # Operator API
    ADMIN_TOKEN: str = ""

    ALERT_COOLDOWN_SECONDS: int = 60
    ALERT_KEEP_RECENT: int = 200
    ALERT_FILE_PATH: str = ""
    ALERT_WEBHOOK_URL: str = ""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def exclude_paths(self) -> List[str]:
        return [p.strip() for p in self.GUARD_EXCLUDE_PATHS.split(",") if p.strip()]

    def allowlist_ips(self) -> List[str]:
        return [x.strip() for x in self.ALLOWLIST_IPS.split(",") if x.strip()]

    def rate_limits(self) -> Tuple[RateLimit, ...]:
        if not self.RATE_LIMIT_ENABLED:
            return ()
        limits = [RateLimit("general", self.RATE_GENERAL_MAX, self.RATE_GENERAL_WINDOW_SEC)]
        # path listesi boş olan limit tamamen kapalıdır (her path'e uygulanmaz)
        api_paths = _csv(self.RATE_API_PATHS)
        if api_paths:
            limits.append(RateLimit("api", self.RATE_API_MAX, self.RATE_API_WINDOW_SEC, prefixes=api_paths))
        auth_paths = _csv(self.RATE_AUTH_PATHS)
        if auth_paths:
            limits.append(RateLimit("auth", self.RATE_AUTH_MAX, self.RATE_AUTH_WINDOW_SEC,
                                    ThreatType.BRUTE_FORCE, prefixes=auth_paths))
        return tuple(limits)

    def detection_config(self) -> DetectionConfig:
        """Engine ayarlarını doğrulanmış DetectionConfig'e çevirir (ConfigurationError fırlatabilir)."""
        return DetectionConfig(
            escalation_window=self.ESCALATION_WINDOW_SEC,
            escalation_threshold=self.ESCALATION_THRESHOLD,
            scoring_window=self.SCORING_WINDOW_SEC,
            max_payload_bytes=self.PAYLOAD_MAX_BYTES,
            retention=self.LEDGER_RETENTION_SEC or None,
            rate_limits=self.rate_limits(),
        )


def get_settings() -> Settings:
    return Settings()
