"""
One-Way Channel - Funding Transaction Tests
=============================================
"""

import pytest
from dataclasses import replace

from one_way_channel.channel.funding import FundingInput, FundingTransaction
from one_way_channel.channel.script_builder import ScriptBuilder
from one_way_channel.domain.models import OutPoint, TxOutput
from one_way_channel.errors import InsufficientFunds, InvalidTransactionShape

FUNDING_AMOUNT = 100_000
CHANGE_SCRIPT = bytes.fromhex("0014") + b"\x33" * 20


class TestFundingBuild:
    """Test funding construction"""

    def test_with_change(self, funding_inputs, channel_params):
        """Test channel output at index 0 and change at index 1"""
        funding = FundingTransaction.build(
            funding_inputs, channel_params, fee=500, change_script=CHANGE_SCRIPT
        )

        channel_output = funding.tx.outputs[0]
        assert channel_output.value == FUNDING_AMOUNT
        assert channel_output.script_pubkey == ScriptBuilder(channel_params).funding_script_pubkey()
        assert funding.change_output == TxOutput(9_500, CHANGE_SCRIPT)
        assert funding.fee == 500
        assert funding.is_valid()

    def test_dust_change_goes_to_fee(self, funding_inputs, channel_params):
        funding = FundingTransaction.build(funding_inputs, channel_params, fee=9_800)

        assert len(funding.tx.outputs) == 1
        assert funding.change_output is None
        assert funding.fee == 10_000

    def test_exact_amount_no_change(self, funding_inputs, channel_params):
        funding = FundingTransaction.build(funding_inputs, channel_params, fee=10_000)
        assert len(funding.tx.outputs) == 1
        assert funding.fee == 10_000

    def test_insufficient_funds(self, funding_inputs, channel_params):
        with pytest.raises(InsufficientFunds) as exc_info:
            FundingTransaction.build(funding_inputs, channel_params, fee=10_001)
        assert exc_info.value.details["required"] == 110_001
        assert exc_info.value.details["available"] == 110_000

    def test_missing_change_script(self, funding_inputs, channel_params):
        with pytest.raises(InvalidTransactionShape) as exc_info:
            FundingTransaction.build(funding_inputs, channel_params, fee=500)
        assert exc_info.value.code == "MISSING_CHANGE_SCRIPT"

    def test_no_inputs(self, channel_params):
        with pytest.raises(InvalidTransactionShape) as exc_info:
            FundingTransaction.build([], channel_params, fee=500)
        assert exc_info.value.code == "NO_INPUTS"

    def test_duplicate_inputs(self, funding_inputs, channel_params):
        with pytest.raises(InvalidTransactionShape) as exc_info:
            FundingTransaction.build(
                [funding_inputs[0], funding_inputs[0]], channel_params, fee=500,
                change_script=CHANGE_SCRIPT,
            )
        assert exc_info.value.code == "DUPLICATE_INPUT"

    def test_funding_below_dust(self, funding_inputs, channel_params):
        small = replace(channel_params, funding_amount=500)
        with pytest.raises(InvalidTransactionShape) as exc_info:
            FundingTransaction.build(funding_inputs, small, fee=500, change_script=CHANGE_SCRIPT)
        assert exc_info.value.code == "FUNDING_BELOW_DUST"

    def test_input_requires_script_code(self):
        with pytest.raises(InvalidTransactionShape):
            FundingInput(OutPoint(b"\x01" * 32, 0), 1_000, b"")


class TestFundingOutpoint:
    """Test channel identity derived from the funding"""

    def test_outpoint_stable_after_signing(self, funding_inputs, channel_params, signer,
                                           payer_secret, payer_pubkey):
        funding = FundingTransaction.build(
            funding_inputs, channel_params, fee=500, change_script=CHANGE_SCRIPT
        )
        signed = funding.sign_p2wpkh(signer, [(payer_secret, payer_pubkey)] * 2)

        assert signed.tx.has_witness()
        assert signed.funding_outpoint == funding.funding_outpoint
        assert signed.funding_outpoint.index == 0
        assert signed.to_data() != funding.to_data()

    def test_channel_parameters(self, funding_inputs, channel_params):
        funding = FundingTransaction.build(
            funding_inputs, channel_params, fee=500, change_script=CHANGE_SCRIPT
        )
        params = funding.channel_parameters()

        assert params.funding_outpoint == funding.funding_outpoint
        assert params.channel_id == str(funding.funding_outpoint)

    def test_key_count_mismatch(self, funding_inputs, channel_params, signer,
                                payer_secret, payer_pubkey):
        funding = FundingTransaction.build(
            funding_inputs, channel_params, fee=500, change_script=CHANGE_SCRIPT
        )
        with pytest.raises(InvalidTransactionShape):
            funding.sign_p2wpkh(signer, [(payer_secret, payer_pubkey)])


class TestFundingShape:
    """Test decoding and tampered outputs"""

    def test_decode_round_trip(self, funding_inputs, channel_params):
        funding = FundingTransaction.build(
            funding_inputs, channel_params, fee=500, change_script=CHANGE_SCRIPT
        )
        decoded = FundingTransaction.from_data(
            funding.to_data(), channel_params, spent_outputs=funding.spent_outputs
        )
        assert decoded == funding

    def test_decode_requires_spent_outputs(self, funding_inputs, channel_params):
        funding = FundingTransaction.build(
            funding_inputs, channel_params, fee=500, change_script=CHANGE_SCRIPT
        )
        with pytest.raises(InvalidTransactionShape) as exc_info:
            FundingTransaction.from_data(funding.to_data(), channel_params)
        assert exc_info.value.code == "MISSING_SPENT_OUTPUTS"

    def test_wrong_amount_detected(self, funding_inputs, channel_params):
        funding = FundingTransaction.build(
            funding_inputs, channel_params, fee=500, change_script=CHANGE_SCRIPT
        )
        channel_output = funding.tx.outputs[0]
        tampered_tx = replace(
            funding.tx,
            outputs=(replace(channel_output, value=channel_output.value - 1),) + funding.tx.outputs[1:],
        )
        tampered = replace(funding, tx=tampered_tx)

        with pytest.raises(InvalidTransactionShape) as exc_info:
            tampered.check_shape()
        assert exc_info.value.code == "FUNDING_AMOUNT_MISMATCH"
        assert not tampered.is_valid()
