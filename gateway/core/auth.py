import hmac
import logging
from typing import Optional

from gateway.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class BrokerAuthenticator:
    """Credential check the broker engine calls when a client connects."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def authenticate(
        self, client_id: str, username: Optional[str], password: Optional[str]
    ) -> bool:
        if not self.settings.broker_require_auth:
            return True

        expected = self.settings.broker_users.get(username or "")
        if expected is not None and hmac.compare_digest(
            expected.encode(), (password or "").encode()
        ):
            return True

        logger.warning(f"Rejected broker client {client_id}: bad credentials for {username!r}")
        return False
