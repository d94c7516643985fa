"""Shared fixtures and test doubles for zig_multisend tests."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from zig_multisend.chain import BroadcastResult, WalletAccount
from zig_multisend.config import MultisendConfig
from zig_multisend.session import SessionManager
from zig_multisend.state import AppState
from zig_multisend.submit import SubmissionController


class FakeSigner:
    def __init__(self, addresses):
        self.addresses = list(addresses)

    async def get_accounts(self):
        return [WalletAccount(address=a) for a in self.addresses]


class FakeWallet:
    """Stands in for the browser/keyring wallet capability."""

    def __init__(self, addresses=("zig1sender",)):
        self.signer = FakeSigner(addresses)
        self.enabled = []

    async def enable(self, chain_id):
        self.enabled.append(chain_id)

    def get_offline_signer(self, chain_id):
        return self.signer


@pytest.fixture
def config() -> MultisendConfig:
    return MultisendConfig()


@pytest.fixture
def state() -> AppState:
    return AppState()


@pytest.fixture
def wallet() -> FakeWallet:
    return FakeWallet()


@pytest.fixture
def client() -> MagicMock:
    """Network client double; sign_and_broadcast returns a fixed hash."""
    client = MagicMock()
    client.sign_and_broadcast = AsyncMock(return_value=BroadcastResult(transaction_hash="ABCDEF123456"))
    return client


@pytest.fixture
def client_factory(client) -> AsyncMock:
    return AsyncMock(return_value=client)


@pytest.fixture
def sessions(state, config, wallet, client_factory) -> SessionManager:
    return SessionManager(state, config, wallet, client_factory)


@pytest.fixture
def controller(state, sessions, config) -> SubmissionController:
    return SubmissionController(state, sessions, config)


@pytest.fixture
def write_csv(tmp_path: Path):
    """Write CSV text to a temp file and return its path."""

    def _write(text: str, name: str = "recipients.csv") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def two_recipients_csv(write_csv) -> Path:
    return write_csv("address,amount\nzig1abc,2.5\nzig1def,1\n")
