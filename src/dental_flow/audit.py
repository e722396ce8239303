"""Default audit sink: writes flow lifecycle events to the log."""

import logging
from typing import Any

from dental_flow.interfaces import AuditEmitter

logger = logging.getLogger(__name__)


class LoggingAuditEmitter(AuditEmitter):
    async def emit(self, event: str, **data: Any) -> None:
        logger.info("audit event=%s %s", event, " ".join(f"{k}={v}" for k, v in sorted(data.items())))
