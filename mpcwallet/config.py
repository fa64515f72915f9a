"""
Environment driven settings.

MPCWALLET_ENCRYPTION_KEY   key material for server shares at rest
MPCWALLET_DKG_SESSION_TTL  seconds an idle DKG session may stay alive
MPCWALLET_LOG_LEVEL        root log level for configure_logging()
"""

import logging
import os
from dataclasses import dataclass

DEV_ENCRYPTION_KEY = "fallback_secret_key_dev"
DEFAULT_SESSION_TTL = 300.0


@dataclass(frozen=True)
class Settings:
    encryption_key: str
    session_ttl: float = DEFAULT_SESSION_TTL
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        env = os.environ if environ is None else environ
        key = env.get("MPCWALLET_ENCRYPTION_KEY")
        if not key:
            logging.getLogger(__name__).warning(
                "MPCWALLET_ENCRYPTION_KEY not set, using the development key")
            key = DEV_ENCRYPTION_KEY
        ttl = float(env.get("MPCWALLET_DKG_SESSION_TTL", DEFAULT_SESSION_TTL))
        if ttl <= 0:
            raise ValueError(f"MPCWALLET_DKG_SESSION_TTL must be positive, got {ttl}")
        return cls(
            encryption_key=key,
            session_ttl=ttl,
            log_level=env.get("MPCWALLET_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
