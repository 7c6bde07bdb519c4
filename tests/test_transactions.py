"""
One-Way Channel - Channel Transaction Tests
=============================================
Registro delle varianti, dispatch per kind e contratto comune.
"""

import pytest
from dataclasses import dataclass, replace

from one_way_channel.channel.commitment import CommitmentTransaction
from one_way_channel.channel.funding import FundingTransaction
from one_way_channel.channel.refund import RefundTransaction
from one_way_channel.channel.transactions import (
    ChannelTransaction,
    ChannelTxKind,
    SpentOutput,
    variant_for,
    decode_channel_transaction,
    channel_transaction_from_dict,
)
from one_way_channel.errors import InvalidTransactionShape

CHANGE_SCRIPT = bytes.fromhex("0014") + b"\x33" * 20


@pytest.fixture
def variants(funding_inputs, funding_outpoint, channel_params, signer, payer_secret):
    """Una istanza per ogni variante"""
    funding = FundingTransaction.build(
        funding_inputs, channel_params, fee=500, change_script=CHANGE_SCRIPT
    )
    refund = RefundTransaction.build(funding_outpoint, channel_params).sign(signer, payer_secret)
    commitment = CommitmentTransaction.build(funding_outpoint, channel_params, 1_000, update_number=3)
    return [funding, refund, commitment]


class TestVariantRegistry:
    """Test closed set of variants"""

    def test_lookup(self):
        assert variant_for("funding") is FundingTransaction
        assert variant_for(ChannelTxKind.REFUND) is RefundTransaction
        assert variant_for("commitment") is CommitmentTransaction

    def test_unknown_kind(self):
        with pytest.raises(InvalidTransactionShape) as exc_info:
            variant_for("penalty")
        assert exc_info.value.code == "UNKNOWN_TX_KIND"

    def test_duplicate_kind_rejected(self):
        with pytest.raises(TypeError):
            @dataclass(frozen=True)
            class OtherCommitment(ChannelTransaction):
                kind = ChannelTxKind.COMMITMENT

    def test_missing_kind_rejected(self):
        with pytest.raises(TypeError):
            class Unnamed(ChannelTransaction):
                pass


class TestSharedContract:
    """Test behaviour common to every variant"""

    def test_dict_round_trip(self, variants):
        for variant in variants:
            data = variant.to_dict()
            assert data["kind"] == variant.kind.value
            assert data["txid"] == variant.txid
            assert channel_transaction_from_dict(data, variant.parameters) == variant

    def test_decode_by_kind(self, variants):
        for variant in variants:
            decoded = decode_channel_transaction(
                variant.kind,
                variant.to_data(),
                variant.parameters,
                spent_outputs=variant.spent_outputs,
                **variant.metadata(),
            )
            assert type(decoded) is type(variant)
            assert decoded.to_data() == variant.to_data()

    def test_signature_hash_per_variant(self, variants):
        digests = {variant.signature_hash(0) for variant in variants}
        assert len(digests) == 3
        assert all(len(d) == 32 for d in digests)

    def test_spent_output_dict(self):
        spent = SpentOutput(script_code=b"\x51", value=42)
        assert SpentOutput.from_dict(spent.to_dict()) == spent


class TestShapeBeforeSigning:
    """Test no digest on a malformed transaction"""

    def test_no_outputs(self, variants):
        commitment = variants[2]
        empty = replace(commitment, tx=replace(commitment.tx, outputs=()))

        with pytest.raises(InvalidTransactionShape) as exc_info:
            empty.signature_hash(0)
        assert exc_info.value.code == "NO_OUTPUTS"

    def test_no_inputs(self, variants):
        refund = variants[1]
        empty = replace(refund, tx=replace(refund.tx, inputs=()), spent_outputs=())

        with pytest.raises(InvalidTransactionShape) as exc_info:
            empty.check_shape()
        assert exc_info.value.code == "NO_INPUTS"

    def test_spent_outputs_mismatch(self, variants):
        funding = variants[0]
        broken = replace(funding, spent_outputs=funding.spent_outputs[:1])

        assert not broken.is_valid()
        with pytest.raises(InvalidTransactionShape) as exc_info:
            broken.sign_input(0, None, b"")
        assert exc_info.value.code == "SPENT_OUTPUTS_MISMATCH"

    def test_input_index_out_of_range(self, variants):
        with pytest.raises(InvalidTransactionShape) as exc_info:
            variants[2].signature_hash(1)
        assert exc_info.value.code == "INPUT_INDEX_OUT_OF_RANGE"

    def test_dust_outputs(self, variants):
        commitment = variants[2]
        assert commitment.dust_outputs() == []
        assert replace(commitment, dust_threshold=2_000).dust_outputs() == [0]

    def test_bad_sighash_byte(self, variants, signer, payer_pubkey):
        refund = variants[1]
        signature = refund.tx.inputs[0].witness[0]
        assert refund.verify_input_signature(0, signature, payer_pubkey, signer)
        assert not refund.verify_input_signature(0, signature[:-1] + b"\x05", payer_pubkey, signer)
