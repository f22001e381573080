"""Application configuration.

AppConfig is a frozen dataclass: immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, secret_key="s3cr3t", session_lifetime=30)
    """

    debug: bool = False

    # Security: a non-empty key installs cookie sessions unless the app
    # already has a SessionMiddleware
    secret_key: str = ""

    # Screen state: snapshot keys live for the session lifetime (minutes)
    session_lifetime: int = 120
    state_key_prefix: str = "screen"
    state_field: str = "_screen"

    # Fragment refresh endpoint: {async_prefix}/{screen}/{method}/{slug}
    async_prefix: str = "/_async"

    # Templates
    template_dir: str | Path | None = None
    base_template: str = "perch/base.html"
    autoescape: bool = True
    trim_blocks: bool = True
    lstrip_blocks: bool = True

    # Logging: level applied to the "perch" logger at startup; None leaves it alone
    log_level: str | None = None

    @property
    def state_ttl(self) -> int:
        """Snapshot time-to-live in seconds."""
        return self.session_lifetime * 60
