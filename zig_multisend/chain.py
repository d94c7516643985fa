"""
Wallet capability and network client for ZIGChain.

The session manager and the submission controller only depend on the
small protocols below. The default implementations use cosmpy: a
LocalWallet derived from a mnemonic plays the wallet extension, and a
LedgerClient seals, signs and broadcasts the MsgMultiSend.

cosmpy is synchronous, so every network round-trip runs in a worker
thread to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional, Protocol

from cosmpy.aerial.client import LedgerClient, NetworkConfig
from cosmpy.aerial.tx import SigningCfg, Transaction
from cosmpy.aerial.wallet import LocalWallet
from cosmpy.crypto.address import Address
from cosmpy.protos.cosmos.bank.v1beta1.bank_pb2 import Input, Output
from cosmpy.protos.cosmos.bank.v1beta1.tx_pb2 import MsgMultiSend
from cosmpy.protos.cosmos.base.v1beta1.coin_pb2 import Coin

from zig_multisend.batch import MSG_MULTI_SEND_TYPE_URL
from zig_multisend.config import ADDRESS_PREFIX, NATIVE_DENOM, Fee
from zig_multisend.errors import NetworkError, SigningUnavailable, Stage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletAccount:
    address: str


@dataclass(frozen=True)
class BroadcastResult:
    transaction_hash: str


class Signer(Protocol):
    async def get_accounts(self) -> list[WalletAccount]: ...


class WalletCapability(Protocol):
    async def enable(self, chain_id: str) -> None: ...

    def get_offline_signer(self, chain_id: str) -> Signer: ...


class SigningClient(Protocol):
    async def sign_and_broadcast(
        self, sender_address: str, messages: list[dict], fee: Fee, memo: str
    ) -> BroadcastResult: ...


ClientFactory = Callable[[str, Signer], Awaitable[SigningClient]]


# ── Wallet ──────────────────────────────────────────────────────

class LocalSigner:
    """Offline signer over a cosmpy LocalWallet for one chain."""

    def __init__(self, wallet: LocalWallet, chain_id: str):
        self.wallet: Optional[LocalWallet] = wallet
        self.chain_id = chain_id

    async def get_accounts(self) -> list[WalletAccount]:
        if self.wallet is None:
            return []
        return [WalletAccount(address=str(self.wallet.address()))]

    def revoke(self) -> None:
        self.wallet = None


class MnemonicWallet:
    """Wallet capability backed by a locally held BIP-39 mnemonic."""

    def __init__(self, mnemonic: str, prefix: str = ADDRESS_PREFIX):
        self._mnemonic = mnemonic.strip()
        self.prefix = prefix
        self._wallet: Optional[LocalWallet] = None
        self._enabled: set[str] = set()

    @classmethod
    def from_file(cls, path: str | Path | None, prefix: str = ADDRESS_PREFIX) -> Optional["MnemonicWallet"]:
        """Load a wallet from a mnemonic file, or None if there is no such file."""
        if path is None:
            return None
        path = Path(path)
        if not path.is_file():
            return None
        return cls(path.read_text(encoding="utf-8"), prefix=prefix)

    async def enable(self, chain_id: str) -> None:
        if self._wallet is None:
            self._wallet = await asyncio.to_thread(
                LocalWallet.from_mnemonic, self._mnemonic, prefix=self.prefix
            )
        self._enabled.add(chain_id)

    def get_offline_signer(self, chain_id: str) -> LocalSigner:
        if chain_id not in self._enabled or self._wallet is None:
            raise SigningUnavailable(f"Wallet is not enabled for chain {chain_id}.")
        return LocalSigner(self._wallet, chain_id)


# ── Network client ──────────────────────────────────────────────

def _coins(entries: list[dict]) -> list[Coin]:
    return [Coin(denom=c["denom"], amount=c["amount"]) for c in entries]


def multisend_to_proto(message: dict) -> MsgMultiSend:
    """Encode a {typeUrl, value} MsgMultiSend dict as its protobuf message."""
    if message.get("typeUrl") != MSG_MULTI_SEND_TYPE_URL:
        raise ValueError(f"Unsupported message type: {message.get('typeUrl')}")
    value = message["value"]
    return MsgMultiSend(
        inputs=[Input(address=i["address"], coins=_coins(i["coins"])) for i in value["inputs"]],
        outputs=[Output(address=o["address"], coins=_coins(o["coins"])) for o in value["outputs"]],
    )


class CosmpySigningClient:
    """Signs with a LocalSigner and broadcasts through a cosmpy LedgerClient."""

    def __init__(self, ledger: LedgerClient, signer: LocalSigner):
        self.ledger = ledger
        self.signer = signer

    async def sign_and_broadcast(
        self, sender_address: str, messages: list[dict], fee: Fee, memo: str
    ) -> BroadcastResult:
        wallet = self.signer.wallet
        if wallet is None:
            raise SigningUnavailable("Signer is no longer available.")
        return await asyncio.to_thread(self._sign_and_broadcast, wallet, sender_address, messages, fee, memo)

    def _sign_and_broadcast(
        self, wallet: LocalWallet, sender_address: str, messages: list[dict], fee: Fee, memo: str
    ) -> BroadcastResult:
        try:
            tx = Transaction()
            for message in messages:
                tx.add_message(multisend_to_proto(message))

            account = self.ledger.query_account(Address(sender_address))
            tx.seal(
                SigningCfg.direct(wallet.public_key(), account.sequence),
                fee=f"{fee.amount}{fee.denom}",
                gas_limit=fee.gas_limit,
                memo=memo,
            )
            tx.sign(wallet.signer(), self.signer.chain_id, account.number)
            tx.complete()
        except Exception as e:
            raise NetworkError(f"Signing error: {e}", stage=Stage.SIGNING) from e

        # failures from here on belong to the broadcast stage
        submitted = self.ledger.broadcast_tx(tx)
        logger.debug("Broadcast accepted: %s", submitted.tx_hash)
        return BroadcastResult(transaction_hash=submitted.tx_hash)


async def connect_with_signer(endpoint: str, signer: LocalSigner) -> CosmpySigningClient:
    """
    Open a LedgerClient for `endpoint` bound to `signer`.

    The endpoint uses cosmpy's scheme prefix, e.g.
    "rest+https://testnet-api.zigchain.com" or "grpc+https://host:443".
    """
    cfg = NetworkConfig(
        chain_id=signer.chain_id,
        url=endpoint,
        fee_minimum_gas_price=0,
        fee_denomination=NATIVE_DENOM,
        staking_denomination=NATIVE_DENOM,
    )
    ledger = await asyncio.to_thread(LedgerClient, cfg)
    return CosmpySigningClient(ledger, signer)
