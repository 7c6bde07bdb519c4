"""
One-Way Channel - Channel Package
===================================
Script builder, varianti di transazione e assembler.
"""

from one_way_channel.channel.parameters import Timelock, ChannelParameters
from one_way_channel.channel.script_builder import ScriptBuilder
from one_way_channel.channel.transactions import (
    ChannelTxKind,
    SpentOutput,
    ChannelTransaction,
    decode_channel_transaction,
    channel_transaction_from_dict,
)
from one_way_channel.channel.funding import FundingInput, FundingTransaction
from one_way_channel.channel.refund import RefundTransaction
from one_way_channel.channel.commitment import CommitmentTransaction
from one_way_channel.channel.signatures import SignatureSet
from one_way_channel.channel.assembler import (
    ChannelState,
    CommitmentRecord,
    SignatureRequest,
    CounterpartySigner,
    TransactionAssembler,
)
from one_way_channel.channel.manager import ChannelManager

__all__ = [
    "Timelock",
    "ChannelParameters",
    "ScriptBuilder",
    "ChannelTxKind",
    "SpentOutput",
    "ChannelTransaction",
    "decode_channel_transaction",
    "channel_transaction_from_dict",
    "FundingInput",
    "FundingTransaction",
    "RefundTransaction",
    "CommitmentTransaction",
    "SignatureSet",
    "ChannelState",
    "CommitmentRecord",
    "SignatureRequest",
    "CounterpartySigner",
    "TransactionAssembler",
    "ChannelManager",
]
