"""
One-Way Channel - Refund Transaction Tests
============================================
Lock encoding, maturita' e firma unilaterale del payer.
"""

import pytest
from dataclasses import replace

from one_way_channel.channel.refund import RefundTransaction
from one_way_channel.channel.script_builder import ScriptBuilder
from one_way_channel.constants import SEQUENCE_FINAL, SEQUENCE_LOCKTIME_ENABLED
from one_way_channel.errors import (
    AmountExceedsFunding,
    DegenerateTransaction,
    InvalidTransactionShape,
    SignatureMismatch,
    TimelockNotMatured,
)

FUNDING_AMOUNT = 100_000
REFUND_HEIGHT = 800_000
PAYER_SCRIPT = bytes.fromhex("0014") + b"\x11" * 20


class TestRefundBuild:
    """Test refund construction"""

    def test_absolute_encoding(self, funding_outpoint, channel_params):
        refund = RefundTransaction.build(funding_outpoint, channel_params, fee=100)

        assert refund.tx.locktime == REFUND_HEIGHT
        assert refund.tx.inputs[0].sequence == SEQUENCE_LOCKTIME_ENABLED
        assert refund.tx.inputs[0].prevout == funding_outpoint
        assert refund.tx.outputs[0].script_pubkey == PAYER_SCRIPT
        assert refund.refund_amount == FUNDING_AMOUNT - 100
        assert refund.fee == 100
        assert refund.is_valid()

    def test_relative_encoding(self, funding_outpoint, relative_params):
        refund = RefundTransaction.build(funding_outpoint, relative_params)

        assert refund.tx.locktime == 0
        assert refund.tx.inputs[0].sequence == 144
        assert refund.tx.version == 2

    def test_relative_requires_version_2(self, funding_outpoint, relative_params):
        with pytest.raises(InvalidTransactionShape) as exc_info:
            RefundTransaction.build(funding_outpoint, relative_params, version=1)
        assert exc_info.value.code == "VERSION_TOO_LOW"

    def test_fee_exceeds_funding(self, funding_outpoint, channel_params):
        with pytest.raises(AmountExceedsFunding):
            RefundTransaction.build(funding_outpoint, channel_params, fee=FUNDING_AMOUNT + 1)

    def test_dust_refund(self, funding_outpoint, channel_params):
        with pytest.raises(DegenerateTransaction):
            RefundTransaction.build(funding_outpoint, channel_params, fee=FUNDING_AMOUNT - 500)

    def test_spends_channel_script(self, funding_outpoint, channel_params):
        refund = RefundTransaction.build(funding_outpoint, channel_params)
        spent = refund.spent_outputs[0]
        assert spent.script_code == ScriptBuilder(channel_params).witness_script()
        assert spent.value == FUNDING_AMOUNT


class TestRefundMaturity:
    """Test timelock maturity"""

    def test_absolute_boundary(self, funding_outpoint, channel_params):
        """Test nLockTime deve essere strettamente minore dell'altezza"""
        refund = RefundTransaction.build(funding_outpoint, channel_params)

        assert refund.maturity_height() == REFUND_HEIGHT + 1
        assert not refund.is_mature(REFUND_HEIGHT - 1)
        assert not refund.is_mature(REFUND_HEIGHT)
        assert refund.is_mature(REFUND_HEIGHT + 1)
        assert not refund.is_valid(block_height=REFUND_HEIGHT)
        assert refund.is_valid(block_height=REFUND_HEIGHT + 1)

    def test_relative_boundary(self, funding_outpoint, relative_params):
        refund = RefundTransaction.build(funding_outpoint, relative_params)

        assert refund.maturity_height(funding_height=1_000) == 1_144
        assert not refund.is_mature(1_143, funding_height=1_000)
        assert refund.is_mature(1_144, funding_height=1_000)

    def test_relative_requires_funding_height(self, funding_outpoint, relative_params):
        refund = RefundTransaction.build(funding_outpoint, relative_params)
        with pytest.raises(InvalidTransactionShape) as exc_info:
            refund.maturity_height()
        assert exc_info.value.code == "MISSING_FUNDING_HEIGHT"

    def test_check_maturity(self, funding_outpoint, channel_params):
        refund = RefundTransaction.build(funding_outpoint, channel_params)

        with pytest.raises(TimelockNotMatured) as exc_info:
            refund.check_maturity(REFUND_HEIGHT)
        assert exc_info.value.details["maturity_height"] == REFUND_HEIGHT + 1

        refund.check_maturity(REFUND_HEIGHT + 1)

    def test_final_sequence_never_mature(self, funding_outpoint, channel_params):
        """Test nLockTime disattivato da sequence finale"""
        refund = RefundTransaction.build(funding_outpoint, channel_params)
        txin = replace(refund.tx.inputs[0], sequence=SEQUENCE_FINAL)
        tampered = replace(refund, tx=replace(refund.tx, inputs=(txin,)))

        assert not tampered.is_mature(REFUND_HEIGHT + 100)
        with pytest.raises(InvalidTransactionShape) as exc_info:
            tampered.check_shape()
        assert exc_info.value.code == "TIMELOCK_ENCODING"


class TestRefundSigning:
    """Test payer-only signature"""

    def test_sign(self, funding_outpoint, channel_params, signer, payer_secret):
        refund = RefundTransaction.build(funding_outpoint, channel_params)
        signed = refund.sign(signer, payer_secret)

        witness = signed.tx.inputs[0].witness
        assert signed.is_signed
        assert not refund.is_signed
        assert witness[1] == b""
        assert witness[2] == ScriptBuilder(channel_params).witness_script()
        assert signed.verify_input_signature(0, witness[0], channel_params.payer_pubkey, signer)
        assert signed.txid == refund.txid

    def test_sign_with_wrong_key(self, funding_outpoint, channel_params, signer, payee_secret):
        refund = RefundTransaction.build(funding_outpoint, channel_params)
        with pytest.raises(SignatureMismatch):
            refund.sign(signer, payee_secret)

    def test_decode_round_trip(self, funding_outpoint, channel_params, signer, payer_secret):
        signed = RefundTransaction.build(funding_outpoint, channel_params).sign(signer, payer_secret)
        decoded = RefundTransaction.from_data(signed.to_data(), signed.parameters)
        assert decoded == signed

    def test_decode_wrong_outpoint(self, funding_outpoint, channel_params):
        refund = RefundTransaction.build(funding_outpoint, channel_params)
        other = channel_params.with_funding_outpoint(replace(funding_outpoint, index=1))

        with pytest.raises(InvalidTransactionShape) as exc_info:
            RefundTransaction.from_data(refund.to_data(), other)
        assert exc_info.value.code == "WRONG_PREVOUT"
