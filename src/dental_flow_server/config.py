"""Server configuration - reads settings from environment variables.

All settings have defaults suitable for local development.
"""

import os
from dataclasses import dataclass, field

from dental_flow.constants import FLOW_FAMILIES, STATE_TTL_MINUTES


@dataclass(frozen=True)
class ServerSettings:
    """Immutable server configuration read from environment at startup."""

    # Network
    host: str = "0.0.0.0"
    port: int = 8080

    # CORS - comma-separated origins, or "*" for wide-open dev mode
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Step graph directory (None → the graphs bundled with dental_flow)
    graph_dir: str | None = None

    # Logging
    log_level: str = "INFO"

    # Where flow states live: "memory", "file" or "database"
    session_backend: str = "memory"
    session_file_dir: str = ".dental_flow_sessions"

    # Idle minutes before a flow expires
    state_ttl_minutes: int = STATE_TTL_MINUTES

    # Start-over page for invalid, missing and expired flows.
    # Per-family overrides come from START_OVER_URL_<FAMILY>.
    start_over_url: str = "/"
    start_over_urls: dict[str, str] = field(default_factory=dict)

    # HMAC key for session-bound CSRF tokens (None = no CSRF check)
    csrf_secret: str | None = None

    # Trusted proxy secret - when set, every request must carry a matching
    # X-Proxy-Secret so X-Session-ID cannot be forged by an external client.
    trusted_proxy_secret: str | None = None

    def start_over_for(self, flow_family: str | None) -> str:
        """Return the start-over URL for *flow_family*."""
        if flow_family is None:
            return self.start_over_url
        return self.start_over_urls.get(flow_family, self.start_over_url)


def _family_env_name(flow_family: str) -> str:
    return "START_OVER_URL_" + flow_family.upper().replace("-", "_")


def load_settings() -> ServerSettings:
    """Build settings from ``SERVER_*`` environment variables."""
    raw_origins = os.getenv("SERVER_CORS_ORIGINS", "*")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]

    start_over_urls = {
        family: os.environ[_family_env_name(family)]
        for family in FLOW_FAMILIES
        if os.getenv(_family_env_name(family))
    }

    return ServerSettings(
        host=os.getenv("SERVER_HOST", "0.0.0.0"),
        port=int(os.getenv("SERVER_PORT", "8080")),
        cors_origins=origins,
        graph_dir=os.getenv("SERVER_GRAPH_DIR") or None,
        log_level=os.getenv("SERVER_LOG_LEVEL", "INFO").upper(),
        session_backend=os.getenv("SERVER_SESSION_BACKEND", "memory").lower(),
        session_file_dir=os.getenv("SERVER_SESSION_FILE_DIR", ".dental_flow_sessions"),
        state_ttl_minutes=int(os.getenv("SERVER_STATE_TTL_MINUTES", str(STATE_TTL_MINUTES))),
        start_over_url=os.getenv("SERVER_START_OVER_URL", "/"),
        start_over_urls=start_over_urls,
        csrf_secret=os.getenv("SERVER_CSRF_SECRET") or None,
        trusted_proxy_secret=os.getenv("TRUSTED_PROXY_SECRET") or None,
    )
