"""Tests for the wallet session state machine."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import FakeWallet
from zig_multisend.batch import Recipient
from zig_multisend.errors import (
    ErrorKind,
    ErrorRecord,
    NetworkError,
    NotReady,
    SigningUnavailable,
    Stage,
    WalletNotFound,
)
from zig_multisend.session import SessionManager
from zig_multisend.state import SessionStatus, SubmissionResult


class TestConnect:

    def test_starts_disconnected(self, sessions):
        session = sessions.session

        assert session.status is SessionStatus.DISCONNECTED
        assert session.address is None
        assert session.signer is None

    @pytest.mark.asyncio
    async def test_connect_stores_address_and_client(self, sessions, wallet, client, client_factory, config):
        session = await sessions.connect()

        assert session.status is SessionStatus.CONNECTED
        assert session.address == "zig1sender"
        assert session.signer is wallet.signer
        assert session.client is client
        assert wallet.enabled == ["zig-test-1"]
        client_factory.assert_awaited_once_with(config.endpoint, wallet.signer)

    @pytest.mark.asyncio
    async def test_connect_clears_previous_error(self, sessions, state):
        state.error = ErrorRecord(Stage.VALIDATION, ErrorKind.NOT_READY, "old")

        await sessions.connect()

        assert state.error is None

    @pytest.mark.asyncio
    async def test_missing_wallet(self, state, config, client_factory):
        sessions = SessionManager(state, config, None, client_factory)

        with pytest.raises(WalletNotFound):
            await sessions.connect()

        assert state.session.status is SessionStatus.DISCONNECTED
        assert state.error.kind is ErrorKind.WALLET_NOT_FOUND
        client_factory.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_wallet_without_accounts(self, state, config, client_factory):
        sessions = SessionManager(state, config, FakeWallet(addresses=()), client_factory)

        with pytest.raises(SigningUnavailable):
            await sessions.connect()

        assert state.session.status is SessionStatus.DISCONNECTED
        assert state.error.kind is ErrorKind.SIGNING_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_first_account_used(self, state, config, client_factory):
        wallet = FakeWallet(addresses=("zig1first", "zig1second"))
        sessions = SessionManager(state, config, wallet, client_factory)

        session = await sessions.connect()

        assert session.address == "zig1first"

    @pytest.mark.asyncio
    async def test_account_index_selects_account(self, state, config, client_factory):
        config.account_index = 1
        wallet = FakeWallet(addresses=("zig1first", "zig1second"))
        sessions = SessionManager(state, config, wallet, client_factory)

        session = await sessions.connect()

        assert session.address == "zig1second"

    @pytest.mark.asyncio
    async def test_account_index_out_of_range(self, state, config, wallet, client_factory):
        config.account_index = 3
        sessions = SessionManager(state, config, wallet, client_factory)

        with pytest.raises(SigningUnavailable, match="out of range"):
            await sessions.connect()

    @pytest.mark.asyncio
    async def test_client_failure_wrapped(self, state, config, wallet):
        factory = AsyncMock(side_effect=RuntimeError("rpc unreachable"))
        sessions = SessionManager(state, config, wallet, factory)

        with pytest.raises(NetworkError) as exc_info:
            await sessions.connect()

        assert exc_info.value.message == "rpc unreachable"
        assert state.session.status is SessionStatus.DISCONNECTED
        assert state.session.address is None
        assert state.error.kind is ErrorKind.NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_connect_when_connected_is_noop(self, sessions, client_factory):
        first = await sessions.connect()
        second = await sessions.connect()

        assert first is second
        assert client_factory.await_count == 1

    @pytest.mark.asyncio
    async def test_connect_while_connecting_rejected(self, state, config, wallet, client):
        release = asyncio.Event()

        async def slow_factory(endpoint, signer):
            await release.wait()
            return client

        sessions = SessionManager(state, config, wallet, slow_factory)
        task = asyncio.create_task(sessions.connect())
        while state.session.status is not SessionStatus.CONNECTING:
            await asyncio.sleep(0)

        with pytest.raises(NotReady):
            await sessions.connect()

        release.set()
        session = await task
        assert session.status is SessionStatus.CONNECTED

    @pytest.mark.asyncio
    async def test_disconnect_during_connect_abandons_session(self, state, config, wallet, client):
        release = asyncio.Event()

        async def slow_factory(endpoint, signer):
            await release.wait()
            return client

        sessions = SessionManager(state, config, wallet, slow_factory)
        task = asyncio.create_task(sessions.connect())
        while state.session.status is not SessionStatus.CONNECTING:
            await asyncio.sleep(0)

        sessions.disconnect()
        release.set()

        with pytest.raises(NotReady):
            await task
        assert state.session.status is SessionStatus.DISCONNECTED
        assert state.session.client is None


class TestDisconnect:

    @pytest.mark.asyncio
    async def test_disconnect_resets_everything(self, sessions, state):
        await sessions.connect()
        state.recipients = [Recipient(address="zig1abc", raw_amount="1")]
        state.selected_file = "recipients.csv"
        state.result = SubmissionResult(tx_hash="ABC")
        state.error = ErrorRecord(Stage.BROADCAST, ErrorKind.NETWORK_ERROR, "boom")

        sessions.disconnect()

        session = state.session
        assert session.status is SessionStatus.DISCONNECTED
        assert session.address is None
        assert session.signer is None
        assert session.client is None
        assert state.recipients == []
        assert state.selected_file is None
        assert state.result is None
        assert state.error is None

    def test_disconnect_when_disconnected(self, sessions, state):
        sessions.disconnect()

        assert state.session.status is SessionStatus.DISCONNECTED
        assert state.result is None

    @pytest.mark.asyncio
    async def test_reconnect_after_disconnect(self, sessions, client_factory):
        await sessions.connect()
        sessions.disconnect()

        session = await sessions.connect()

        assert session.status is SessionStatus.CONNECTED
        assert client_factory.await_count == 2

    def test_disconnect_bumps_generation(self, sessions, state):
        before = state.generation

        sessions.disconnect()

        assert state.generation == before + 1
