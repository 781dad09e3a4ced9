"""
Pickup change notifier.

Tenant-scoped WebSocket fan-out. After a pickup mutation commits, the
workflow publishes a small "pickup changed" message to every client of
that tenant so driver apps can refresh without polling.
"""

import asyncio
import json
import logging
from typing import Dict, Set, Any

from fastapi import WebSocket

logger = logging.getLogger("pickup_backend.notifier")


class PickupChangeNotifier:

    def __init__(self):
        self._clients: Dict[int, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, tenant_id: int, ws: WebSocket):
        """Accept a WebSocket connection and subscribe it to one tenant."""
        await ws.accept()
        async with self._lock:
            self._clients.setdefault(tenant_id, set()).add(ws)
        logger.info("WS connect: tenant=%s clients=%s", tenant_id, self.client_count(tenant_id))

    async def disconnect(self, tenant_id: int, ws: WebSocket):
        async with self._lock:
            clients = self._clients.get(tenant_id)
            if clients is not None:
                clients.discard(ws)
                if not clients:
                    del self._clients[tenant_id]
        logger.info("WS disconnect: tenant=%s clients=%s", tenant_id, self.client_count(tenant_id))

    def client_count(self, tenant_id: int) -> int:
        return len(self._clients.get(tenant_id, ()))

    async def publish(self, tenant_id: int, event_type: str, data: Dict[str, Any]) -> int:
        """
        Send an event to every client of a tenant.

        Dead connections are dropped; delivery failures are never raised to
        the caller because the change has already been committed.

        Returns:
            Number of clients the message was delivered to
        """
        message = json.dumps({"type": event_type, "data": data}, default=str)
        delivered = 0
        disconnected = []

        # Send outside the lock so a slow client cannot stall connect/disconnect
        async with self._lock:
            targets = list(self._clients.get(tenant_id, ()))

        for ws in targets:
            try:
                await ws.send_text(message)
                delivered += 1
            except Exception as e:
                logger.warning("WS send failed, dropping client: %s", e)
                disconnected.append(ws)

        if disconnected:
            async with self._lock:
                clients = self._clients.get(tenant_id)
                if clients is not None:
                    clients.difference_update(disconnected)
                    if not clients:
                        del self._clients[tenant_id]

        logger.debug("Event '%s' sent to %s clients of tenant %s", event_type, delivered, tenant_id)
        return delivered


# Process-wide instance used by the API layer
pickup_notifier = PickupChangeNotifier()
