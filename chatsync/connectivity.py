"""Connectivity state machine gating input and send."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .constants import SUB_SUBSCRIBED
from .types import ConnectionState

logger = logging.getLogger(__name__)


class ConnectivityState:
    """Tracks connecting / connected / disconnected for one session.

    ``disconnected`` is only entered on a bootstrap failure and is terminal
    for subscription acknowledgments: a late stream status can't revive a
    session whose directory load failed. Only an explicit ``reset`` (a
    manual directory reload) leaves it.
    """

    def __init__(self, initial: ConnectionState = ConnectionState.CONNECTING) -> None:
        self._state = initial
        self.on_change: Callable[[ConnectionState], None] | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def can_send(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def _set(self, state: ConnectionState) -> bool:
        if state is self._state:
            return False

        previous = self._state
        self._state = state
        logger.info("Connectivity %s -> %s", previous.value, state.value)

        if self.on_change:
            try:
                self.on_change(state)
            except Exception as e:
                logger.exception("Error in connectivity on_change callback: %s", e)
        return True

    def reset(self) -> bool:
        """Re-enter ``connecting`` (room change or manual reload)."""
        return self._set(ConnectionState.CONNECTING)

    def mark_connected(self) -> bool:
        return self._set(ConnectionState.CONNECTED)

    def mark_disconnected(self) -> bool:
        return self._set(ConnectionState.DISCONNECTED)

    def apply_subscription_status(self, status: str) -> bool:
        """Map an event stream acknowledgment onto the state machine.

        Args:
            status: Acknowledgment string reported by the stream

        Returns:
            True if the state changed
        """
        if self._state is ConnectionState.DISCONNECTED:
            logger.debug("Ignoring subscription status %s while disconnected", status)
            return False

        if status == SUB_SUBSCRIBED:
            return self._set(ConnectionState.CONNECTED)
        return self._set(ConnectionState.CONNECTING)
