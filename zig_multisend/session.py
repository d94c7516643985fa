"""
Wallet session state machine.

    Disconnected ──connect()──► Connecting ──► Connected
          ▲                         │              │
          └────── failure ──────────┘              │
          └────────────── disconnect() ────────────┘

The manager obtains one account address and one signing client from the
wallet capability and stores them in the shared AppState. There is no
reconnection retry and no expiry detection: a signer that went away is
only noticed when the next send tries to use it.
"""

from __future__ import annotations

import logging
from typing import Optional

from zig_multisend.chain import ClientFactory, WalletCapability
from zig_multisend.config import MultisendConfig
from zig_multisend.errors import (
    MultisendError,
    NetworkError,
    NotReady,
    SigningUnavailable,
    Stage,
    WalletNotFound,
)
from zig_multisend.state import AppState, Session, SessionStatus

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(
        self,
        state: AppState,
        config: MultisendConfig,
        wallet: Optional[WalletCapability],
        client_factory: ClientFactory,
    ):
        self.state = state
        self.config = config
        self.wallet = wallet
        self.client_factory = client_factory

    @property
    def session(self) -> Session:
        return self.state.session

    async def connect(self) -> Session:
        """
        Enable the wallet for the configured chain, pick an account and open
        a signing client for it.

        Failures are recorded in the error slot and re-raised; the session
        is left Disconnected.
        """
        session = self.session
        if session.status is SessionStatus.CONNECTED:
            return session
        if session.status is SessionStatus.CONNECTING:
            err = NotReady("Wallet connection already in progress.")
            self.state.record_error(err)
            raise err

        generation = self.state.generation
        session.status = SessionStatus.CONNECTING
        try:
            address, signer, client = await self._open()
        except MultisendError as e:
            self._fail(e, generation)
            raise
        except Exception as e:
            err = NetworkError(str(e), stage=Stage.SIGNING)
            self._fail(err, generation)
            raise err from e

        if self.state.generation != generation:
            err = NotReady("Wallet was disconnected while connecting.")
            self.state.record_error(err)
            raise err

        session.address = address
        session.signer = signer
        session.client = client
        session.status = SessionStatus.CONNECTED
        self.state.error = None
        logger.info("Connected wallet %s on %s", address, self.config.chain_id)
        return session

    async def _open(self):
        if self.wallet is None:
            raise WalletNotFound("Wallet not found.")

        chain_id = self.config.chain_id
        await self.wallet.enable(chain_id)
        signer = self.wallet.get_offline_signer(chain_id)
        accounts = await signer.get_accounts()
        if not accounts:
            raise SigningUnavailable("No accounts found in wallet.")

        index = self.config.account_index
        if not 0 <= index < len(accounts):
            raise SigningUnavailable(
                f"Account index {index} out of range, wallet has {len(accounts)} account(s)."
            )
        address = accounts[index].address

        client = await self.client_factory(self.config.endpoint, signer)
        return address, signer, client

    def _fail(self, exc: MultisendError, generation: int) -> None:
        # after a disconnect() the session has already been reset
        if self.state.generation == generation:
            self.state.session = Session()
        self.state.record_error(exc)
        logger.warning("Wallet connection failed: %s", exc.message)

    def disconnect(self) -> None:
        """Drop the session and everything loaded under it."""
        previous = self.session.address
        self.state.reset()
        logger.info("Disconnected wallet %s", previous or "(none)")
