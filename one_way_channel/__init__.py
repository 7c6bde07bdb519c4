"""
One-Way Channel - Payment Channel Transaction Core
====================================================
Costruzione e serializzazione delle transazioni di un canale di
pagamento unidirezionale (funding, commitment, refund).

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__license__ = "MIT"

# Channel core
from one_way_channel.channel import (
    Timelock,
    ChannelParameters,
    ScriptBuilder,
    ChannelTxKind,
    ChannelTransaction,
    decode_channel_transaction,
    FundingInput,
    FundingTransaction,
    RefundTransaction,
    CommitmentTransaction,
    SignatureSet,
    ChannelState,
    SignatureRequest,
    TransactionAssembler,
    ChannelManager,
)

# Domain
from one_way_channel.domain import OutPoint, Transaction, ECDSASigner, generate_keypair
from one_way_channel.config import ChannelSettings, get_settings

# Constants
from one_way_channel.constants import ChannelRole, TimelockKind, SighashFlag

__all__ = [
    # Version
    "__version__",

    # Channel
    "Timelock",
    "ChannelParameters",
    "ScriptBuilder",
    "ChannelTxKind",
    "ChannelTransaction",
    "decode_channel_transaction",
    "FundingInput",
    "FundingTransaction",
    "RefundTransaction",
    "CommitmentTransaction",
    "SignatureSet",
    "ChannelState",
    "SignatureRequest",
    "TransactionAssembler",
    "ChannelManager",

    # Domain
    "OutPoint",
    "Transaction",
    "ECDSASigner",
    "generate_keypair",
    "ChannelSettings",
    "get_settings",

    # Constants
    "ChannelRole",
    "TimelockKind",
    "SighashFlag",
]
