"""Session-bound CSRF token check.

A valid token is ``hex(HMAC-SHA256(secret, session_id))``.  Tokens are
issued by the front end that owns the session; this service only verifies
them.
"""

import hashlib
import hmac

from dental_flow.interfaces import CsrfValidator


def expected_token(secret: str, session_id: str) -> str:
    return hmac.new(
        secret.encode("utf-8"), session_id.encode("utf-8"), hashlib.sha256
    ).hexdigest()


class HmacCsrfValidator(CsrfValidator):
    def __init__(self, secret: str) -> None:
        self._secret = secret

    async def validate(self, token: str | None, session_id: str) -> bool:
        if not token:
            return False
        # Constant-time comparison to prevent timing side-channels.
        return hmac.compare_digest(token, expected_token(self._secret, session_id))
