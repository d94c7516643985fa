"""Tests for the cosmpy-backed wallet and network client."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from zig_multisend.batch import MSG_MULTI_SEND_TYPE_URL
from zig_multisend.chain import (
    CosmpySigningClient,
    LocalSigner,
    MnemonicWallet,
    WalletAccount,
    multisend_to_proto,
)
from zig_multisend.config import Fee
from zig_multisend.errors import NetworkError, SigningUnavailable, Stage


MESSAGE = {
    "typeUrl": MSG_MULTI_SEND_TYPE_URL,
    "value": {
        "inputs": [{"address": "zig1sender", "coins": [{"denom": "uzig", "amount": "3500000"}]}],
        "outputs": [
            {"address": "zig1abc", "coins": [{"denom": "uzig", "amount": "2500000"}]},
            {"address": "zig1def", "coins": [{"denom": "uzig", "amount": "1000000"}]},
        ],
    },
}

FEE = Fee(denom="uzig", amount=150, gas_limit=200000)


class TestMultisendProto:

    def test_encodes_inputs_and_outputs(self):
        msg = multisend_to_proto(MESSAGE)

        assert len(msg.inputs) == 1
        assert msg.inputs[0].address == "zig1sender"
        assert msg.inputs[0].coins[0].denom == "uzig"
        assert msg.inputs[0].coins[0].amount == "3500000"
        assert [o.address for o in msg.outputs] == ["zig1abc", "zig1def"]
        assert [o.coins[0].amount for o in msg.outputs] == ["2500000", "1000000"]

    def test_rejects_other_messages(self):
        with pytest.raises(ValueError, match="Unsupported message type"):
            multisend_to_proto({"typeUrl": "/cosmos.bank.v1beta1.MsgSend", "value": {}})


class TestMnemonicWallet:

    def test_from_file_without_path(self):
        assert MnemonicWallet.from_file(None) is None

    def test_from_missing_file(self, tmp_path):
        assert MnemonicWallet.from_file(tmp_path / "mnemonic.txt") is None

    def test_from_file(self, tmp_path):
        path = tmp_path / "mnemonic.txt"
        path.write_text("word " * 24)

        wallet = MnemonicWallet.from_file(path, prefix="zig")

        assert isinstance(wallet, MnemonicWallet)
        assert wallet.prefix == "zig"

    def test_signer_requires_enable(self):
        wallet = MnemonicWallet("word " * 24)

        with pytest.raises(SigningUnavailable):
            wallet.get_offline_signer("zig-test-1")


class TestLocalSigner:

    @pytest.mark.asyncio
    async def test_accounts(self):
        local_wallet = MagicMock()
        local_wallet.address.return_value = "zig1abc"

        accounts = await LocalSigner(local_wallet, "zig-test-1").get_accounts()

        assert accounts == [WalletAccount(address="zig1abc")]

    @pytest.mark.asyncio
    async def test_revoked_signer_has_no_accounts(self):
        signer = LocalSigner(MagicMock(), "zig-test-1")
        signer.revoke()

        assert await signer.get_accounts() == []

    @pytest.mark.asyncio
    async def test_revoked_signer_cannot_sign(self):
        ledger = MagicMock()
        signer = LocalSigner(MagicMock(), "zig-test-1")
        client = CosmpySigningClient(ledger, signer)
        signer.revoke()

        with pytest.raises(SigningUnavailable):
            await client.sign_and_broadcast(
                "zig1sender", [MESSAGE], Fee(denom="uzig", amount=150, gas_limit=200000), "MultiSend"
            )

        ledger.broadcast_tx.assert_not_called()

    @pytest.mark.asyncio
    async def test_account_lookup_failure_is_signing_stage(self, monkeypatch):
        monkeypatch.setattr("zig_multisend.chain.Address", lambda address: address)
        ledger = MagicMock()
        ledger.query_account.side_effect = RuntimeError("account not found")
        client = CosmpySigningClient(ledger, LocalSigner(MagicMock(), "zig-test-1"))

        with pytest.raises(NetworkError) as exc_info:
            await client.sign_and_broadcast("zig1sender", [MESSAGE], FEE, "MultiSend")

        assert exc_info.value.stage is Stage.SIGNING
        assert exc_info.value.message == "Signing error: account not found"
        ledger.broadcast_tx.assert_not_called()

    @pytest.mark.asyncio
    async def test_broadcast_failure_is_left_to_the_caller(self, monkeypatch):
        monkeypatch.setattr("zig_multisend.chain.Address", lambda address: address)
        monkeypatch.setattr("zig_multisend.chain.Transaction", MagicMock())
        monkeypatch.setattr("zig_multisend.chain.SigningCfg", MagicMock())
        ledger = MagicMock()
        ledger.broadcast_tx.side_effect = RuntimeError("connection reset")
        client = CosmpySigningClient(ledger, LocalSigner(MagicMock(), "zig-test-1"))

        with pytest.raises(RuntimeError, match="connection reset"):
            await client.sign_and_broadcast("zig1sender", [MESSAGE], FEE, "MultiSend")

        ledger.query_account.assert_called_once_with("zig1sender")
