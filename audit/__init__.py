"""Admin audit log.

Audit entries are best-effort telemetry: they are written after a state
transition has committed, in a background task, and a failed write is
logged and dropped. It can never roll back or block the transition.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from database import get_pool

logger = logging.getLogger(__name__)

AuditWriter = Callable[[Dict[str, Any]], Awaitable[None]]

def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Cannot serialize {type(value).__name__}")

async def write_audit_entry(entry: Dict[str, Any], pool=None) -> None:
    """Insert one audit entry into admin_audit_log."""
    pool = pool or await get_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            '''
            INSERT INTO admin_audit_log (
                admin_id,
                admin_email,
                action,
                details,
                ip_address,
                created_at
            ) VALUES ($1, $2, $3, $4, $5, $6)
            ''',
            entry.get('admin_id'),
            entry.get('admin_email'),
            entry['action'],
            json.dumps(entry.get('details') or {}, default=_json_default),
            entry.get('ip_address'),
            entry['created_at']
        )

class AuditLog:
    """Fire-and-forget audit recorder."""

    def __init__(self, writer: Optional[AuditWriter] = None) -> None:
        """Initialize the audit log.

        Args:
            writer: Coroutine function persisting one entry. Defaults to the
                admin_audit_log table.
        """
        self.writer = writer or write_audit_entry
        self._pending: Set[asyncio.Task] = set()

    def record(
        self,
        action: str,
        details: Optional[Dict[str, Any]] = None,
        admin: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None
    ) -> None:
        """Schedule an audit entry. Returns immediately."""
        admin = admin or {}
        entry = {
            'action': action,
            'details': details or {},
            'admin_id': admin.get('id'),
            'admin_email': admin.get('email'),
            'ip_address': ip_address or admin.get('ip_address'),
            'created_at': datetime.now(timezone.utc)
        }
        try:
            task = asyncio.get_running_loop().create_task(self._write(entry))
        except RuntimeError:
            logger.warning(f"No running event loop, audit entry {action} dropped")
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, entry: Dict[str, Any]) -> None:
        try:
            await self.writer(entry)
        except Exception as e:
            logger.warning(f"Audit log write failed for {entry['action']}: {e}")

    async def flush(self) -> None:
        """Wait for scheduled writes to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending))
