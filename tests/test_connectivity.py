"""Tests for the connectivity state machine."""

import pytest

from chatsync.connectivity import ConnectivityState
from chatsync.constants import SUB_CHANNEL_ERROR, SUB_CLOSED, SUB_SUBSCRIBED, SUB_TIMED_OUT
from chatsync.types import ConnectionState


class TestConnectivityState:
    def test_starts_connecting(self):
        state = ConnectivityState()

        assert state.state is ConnectionState.CONNECTING
        assert state.can_send is False

    def test_subscribed_connects(self):
        state = ConnectivityState()

        assert state.apply_subscription_status(SUB_SUBSCRIBED) is True
        assert state.state is ConnectionState.CONNECTED
        assert state.can_send is True

    @pytest.mark.parametrize("status", [SUB_TIMED_OUT, SUB_CHANNEL_ERROR, SUB_CLOSED, "WHATEVER"])
    def test_other_statuses_mean_connecting(self, status):
        state = ConnectivityState(ConnectionState.CONNECTED)

        state.apply_subscription_status(status)

        assert state.state is ConnectionState.CONNECTING

    def test_disconnected_is_sticky(self):
        state = ConnectivityState()
        state.mark_disconnected()

        assert state.apply_subscription_status(SUB_SUBSCRIBED) is False
        assert state.state is ConnectionState.DISCONNECTED

        state.reset()
        assert state.state is ConnectionState.CONNECTING

    def test_listener_only_sees_transitions(self):
        seen = []
        state = ConnectivityState()
        state.on_change = seen.append

        state.reset()
        state.mark_connected()
        state.mark_connected()
        state.mark_disconnected()

        assert seen == [ConnectionState.CONNECTED, ConnectionState.DISCONNECTED]

    def test_listener_errors_do_not_block_transition(self):
        state = ConnectivityState()

        def boom(new_state):
            raise RuntimeError("listener failed")

        state.on_change = boom

        assert state.mark_connected() is True
        assert state.state is ConnectionState.CONNECTED
