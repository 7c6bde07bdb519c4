"""
One-Way Channel - Script Builder Tests
========================================
Unit tests for script primitives and channel scripts.
"""

import pytest

from one_way_channel.channel.parameters import ChannelParameters, Timelock
from one_way_channel.channel.script_builder import ScriptBuilder, witness_signature
from one_way_channel.constants import SighashFlag
from one_way_channel.domain.crypto_core import compute_sha256
from one_way_channel.domain.script import (
    OP_0, OP_2, OP_IF, OP_ELSE, OP_ENDIF, OP_DROP,
    OP_CHECKSIG, OP_CHECKMULTISIG,
    OP_CHECKLOCKTIMEVERIFY, OP_CHECKSEQUENCEVERIFY,
    push_data,
    push_int,
    encode_script_number,
    decode_script_number,
    iter_script_ops,
    disassemble,
)
from one_way_channel.errors import InvalidTransactionShape, InvalidKeyError


class TestScriptPrimitives:
    """Test pushes and script numbers"""

    def test_push_data_sizes(self):
        assert push_data(b"\x01" * 75)[:1] == b"\x4b"
        assert push_data(b"\x01" * 76)[:2] == b"\x4c\x4c"
        assert push_data(b"\x01" * 256)[:3] == b"\x4d\x00\x01"

    @pytest.mark.parametrize("value,encoded", [
        (0, ""),
        (1, "01"),
        (127, "7f"),
        (128, "8000"),
        (144, "9000"),
        (255, "ff00"),
        (256, "0001"),
        (-1, "81"),
        (800_000, "00350c"),
    ])
    def test_script_numbers(self, value, encoded):
        assert encode_script_number(value).hex() == encoded
        assert decode_script_number(bytes.fromhex(encoded)) == value

    def test_push_int_small(self):
        assert push_int(0) == bytes([OP_0])
        assert push_int(2) == bytes([OP_2])
        assert push_int(16).hex() == "60"
        assert push_int(17).hex() == "0111"

    def test_malformed_script(self):
        with pytest.raises(InvalidTransactionShape):
            list(iter_script_ops(b"\x05\x01"))


class TestChannelScript:
    """Test cooperative-or-refund witness script"""

    def test_absolute_layout(self, channel_params):
        """Test opcode layout with CLTV"""
        script = ScriptBuilder(channel_params).witness_script()
        ops = list(iter_script_ops(script))

        assert [op for op, _ in ops] == [
            OP_IF, OP_2, 33, 33, OP_2, OP_CHECKMULTISIG,
            OP_ELSE, 3, OP_CHECKLOCKTIMEVERIFY, OP_DROP, 33, OP_CHECKSIG,
            OP_ENDIF,
        ]
        assert ops[2][1] == channel_params.payer_pubkey
        assert ops[3][1] == channel_params.payee_pubkey
        assert decode_script_number(ops[7][1]) == 800_000
        assert ops[10][1] == channel_params.payer_pubkey

    def test_relative_uses_csv(self, relative_params):
        script = ScriptBuilder(relative_params).witness_script()
        assert "OP_CHECKSEQUENCEVERIFY" in disassemble(script)
        assert "OP_CHECKLOCKTIMEVERIFY" not in disassemble(script)
        assert OP_CHECKSEQUENCEVERIFY in script

    def test_deterministic(self, channel_params):
        """Test same parameters yield byte-identical scripts"""
        rebuilt = ChannelParameters.from_dict(channel_params.to_dict())
        first = ScriptBuilder(channel_params)
        second = ScriptBuilder(rebuilt)

        assert first.witness_script() == second.witness_script()
        assert first.funding_script_pubkey() == second.funding_script_pubkey()
        assert first.locking_script() == first.witness_script()

    def test_timelock_changes_script(self, channel_params, relative_params):
        assert ScriptBuilder(channel_params).witness_script() != ScriptBuilder(relative_params).witness_script()

    def test_p2wsh(self, channel_params):
        builder = ScriptBuilder(channel_params)
        spk = builder.funding_script_pubkey()
        assert spk == b"\x00\x20" + compute_sha256(builder.witness_script())

    def test_pubkeys_in(self, channel_params):
        pubkeys = ScriptBuilder.pubkeys_in(ScriptBuilder(channel_params).witness_script())
        assert pubkeys == [
            channel_params.payer_pubkey,
            channel_params.payee_pubkey,
            channel_params.payer_pubkey,
        ]


class TestUnlockingWitness:
    """Test witness stacks"""

    def test_cooperative(self, channel_params):
        builder = ScriptBuilder(channel_params)
        witness = builder.cooperative_witness(b"\x30payer\x01", b"\x30payee\x01")
        assert witness == [b"", b"\x30payer\x01", b"\x30payee\x01", b"\x01", builder.witness_script()]

    def test_refund(self, channel_params):
        builder = ScriptBuilder(channel_params)
        witness = builder.refund_witness(b"\x30payer\x01")
        assert witness == [b"\x30payer\x01", b"", builder.witness_script()]

    def test_missing_signature(self, channel_params):
        builder = ScriptBuilder(channel_params)
        with pytest.raises(InvalidTransactionShape):
            builder.cooperative_witness(b"\x30", b"")
        with pytest.raises(InvalidTransactionShape):
            builder.refund_witness(b"")

    def test_witness_signature_flag(self):
        assert witness_signature(b"\x30\x01", SighashFlag.SINGLE_ANYONECANPAY)[-1] == 0x83


class TestParameters:
    """Test parameter and timelock validation"""

    @pytest.mark.parametrize("builder,value", [
        (Timelock.absolute, 0),
        (Timelock.absolute, 500_000_000),
        (Timelock.relative, 0),
        (Timelock.relative, 65_536),
    ])
    def test_timelock_range(self, builder, value):
        with pytest.raises(InvalidTransactionShape):
            builder(value)

    def test_timelock_limits_accepted(self):
        assert Timelock.absolute(499_999_999).value == 499_999_999
        assert Timelock.relative(65_535).value == 65_535

    def test_duplicate_keys(self, payer_pubkey):
        with pytest.raises(InvalidTransactionShape):
            ChannelParameters(payer_pubkey, payer_pubkey, 100_000, Timelock.absolute(10))

    def test_invalid_pubkey(self, payer_pubkey):
        with pytest.raises(InvalidKeyError):
            ChannelParameters(payer_pubkey, b"\x04" * 33, 100_000, Timelock.absolute(10))

    def test_zero_funding(self, payer_pubkey, payee_pubkey):
        with pytest.raises(InvalidTransactionShape):
            ChannelParameters(payer_pubkey, payee_pubkey, 0, Timelock.absolute(10))

    def test_channel_id(self, channel_params, funding_outpoint):
        assert channel_params.channel_id.startswith("pending:")
        funded = channel_params.with_funding_outpoint(funding_outpoint)
        assert funded.channel_id == str(funding_outpoint)
        assert funded.pending_id == channel_params.pending_id

    def test_round_trip(self, channel_params, funding_outpoint):
        funded = channel_params.with_funding_outpoint(funding_outpoint)
        assert ChannelParameters.from_dict(funded.to_dict()) == funded
