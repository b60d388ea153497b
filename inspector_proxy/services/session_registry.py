"""
Session registry.

Maps session ids to browser-facing transports so that message POSTs, which
arrive as independent requests, can find the session they belong to.
"""
import asyncio
import logging
from typing import Dict, List, Optional

from inspector_proxy.transports.base import Transport
from inspector_proxy.utils.errors import SessionNotFound

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Process-wide map of session id to browser-facing transport.

    Every operation runs under a single lock. A transport whose close has
    started is never returned by ``lookup``.
    """

    def __init__(self):
        self._transports: Dict[str, Transport] = {}
        self._lock = asyncio.Lock()

    async def insert(self, session_id: str, transport: Transport) -> None:
        """
        Register a transport.

        Raises:
            ValueError: If the session id is already registered
        """
        async with self._lock:
            if session_id in self._transports:
                raise ValueError(f"Session '{session_id}' is already registered")
            self._transports[session_id] = transport
            logger.debug(f"Registered session {session_id} ({len(self._transports)} active)")

    async def lookup(self, session_id: str) -> Transport:
        """
        Find the live transport for a session.

        Raises:
            SessionNotFound: If the id is unknown or its transport is closing
        """
        async with self._lock:
            transport = self._transports.get(session_id)
            if transport is None or transport.is_closed:
                raise SessionNotFound(f"Session '{session_id}' not found")
            return transport

    async def remove(self, session_id: str) -> Optional[Transport]:
        """Unregister a session. Unknown ids are ignored."""
        async with self._lock:
            transport = self._transports.pop(session_id, None)
            if transport is not None:
                logger.debug(f"Removed session {session_id} ({len(self._transports)} active)")
            return transport

    async def count(self) -> int:
        async with self._lock:
            return len(self._transports)

    async def ids(self) -> List[str]:
        async with self._lock:
            return list(self._transports)

    async def close_all(self) -> None:
        """Close and unregister every session (used on shutdown)."""
        async with self._lock:
            transports = list(self._transports.items())
            self._transports.clear()

        for session_id, transport in transports:
            logger.info(f"Closing session {session_id} on shutdown")
            try:
                await transport.close("server shutdown")
            except Exception as e:
                logger.warning(f"Failed to close session {session_id}: {e}", exc_info=True)


# Singleton instance
_session_registry: Optional[SessionRegistry] = None


def get_session_registry() -> SessionRegistry:
    """Get or create the session registry singleton."""
    global _session_registry
    if _session_registry is None:
        _session_registry = SessionRegistry()
    return _session_registry
