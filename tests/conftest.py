"""
One-Way Channel - Pytest Configuration
========================================
Fixtures e configurazione per testing.

Version: 1.0.0
"""

import threading
import pytest
from pathlib import Path
import tempfile
import shutil

# Internal imports
from one_way_channel.config import ChannelSettings
from one_way_channel.constants import ChannelRole
from one_way_channel.domain.crypto_core import (
    ECDSASigner,
    compute_sha256,
    public_key_from_secret,
)
from one_way_channel.domain.models import OutPoint
from one_way_channel.domain.script import p2pkh_script_code
from one_way_channel.channel.parameters import ChannelParameters, Timelock
from one_way_channel.channel.funding import FundingInput
from one_way_channel.channel.assembler import TransactionAssembler


FUNDING_AMOUNT = 100_000
REFUND_HEIGHT = 800_000

PAYER_SCRIPT = bytes.fromhex("0014") + b"\x11" * 20
PAYEE_SCRIPT = bytes.fromhex("0014") + b"\x22" * 20
CHANGE_SCRIPT = bytes.fromhex("0014") + b"\x33" * 20


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================

@pytest.fixture
def test_settings(temp_data_dir):
    """Test configuration"""
    return ChannelSettings(
        network="regtest",
        dust_threshold=546,
        commitment_fee=100,
        refund_fee=100,
        fee_rate=None,
        signing_timeout_seconds=2.0,
        audit_log_enabled=False,
        log_to_file=False,
        log_dir=temp_data_dir,
    )


@pytest.fixture
def temp_data_dir():
    """Temporary data directory"""
    temp_dir = Path(tempfile.mkdtemp())
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


# ============================================================================
# KEY FIXTURES
# ============================================================================

@pytest.fixture
def signer():
    return ECDSASigner()


@pytest.fixture
def payer_secret():
    return compute_sha256(b"payer")


@pytest.fixture
def payee_secret():
    return compute_sha256(b"payee")


@pytest.fixture
def stranger_secret():
    return compute_sha256(b"stranger")


@pytest.fixture
def payer_pubkey(payer_secret):
    return public_key_from_secret(payer_secret)


@pytest.fixture
def payee_pubkey(payee_secret):
    return public_key_from_secret(payee_secret)


# ============================================================================
# CHANNEL FIXTURES
# ============================================================================

@pytest.fixture
def channel_params(payer_pubkey, payee_pubkey):
    """Channel parameters con timelock assoluto e script di payout espliciti"""
    return ChannelParameters(
        payer_pubkey=payer_pubkey,
        payee_pubkey=payee_pubkey,
        funding_amount=FUNDING_AMOUNT,
        refund_timelock=Timelock.absolute(REFUND_HEIGHT),
        payer_script=PAYER_SCRIPT,
        payee_script=PAYEE_SCRIPT,
    )


@pytest.fixture
def relative_params(payer_pubkey, payee_pubkey):
    """Channel parameters con timelock relativo (144 blocchi)"""
    return ChannelParameters(
        payer_pubkey=payer_pubkey,
        payee_pubkey=payee_pubkey,
        funding_amount=FUNDING_AMOUNT,
        refund_timelock=Timelock.relative(144),
        payer_script=PAYER_SCRIPT,
        payee_script=PAYEE_SCRIPT,
    )


@pytest.fixture
def funding_outpoint():
    return OutPoint(txid=b"\xaa" * 32, index=0)


@pytest.fixture
def funding_inputs():
    """Due UTXO del payer: 60000 + 50000"""
    script_code = p2pkh_script_code(b"\x44" * 20)
    return [
        FundingInput(OutPoint(b"\x01" * 32, 0), 60_000, script_code),
        FundingInput(OutPoint(b"\x02" * 32, 1), 50_000, script_code),
    ]


# ============================================================================
# COUNTERPARTY FIXTURES
# ============================================================================

class SigningCounterparty:
    """Controparte che firma ogni richiesta con la propria chiave"""

    def __init__(self, secret: bytes, signer: ECDSASigner):
        self.secret = secret
        self.signer = signer
        self.requests = []

    def request_signature(self, request):
        self.requests.append(request)
        return request.commitment.sign_input(0, self.signer, self.secret, request.sighash_flag)


class DecliningCounterparty:
    def __init__(self):
        self.requests = []

    def request_signature(self, request):
        self.requests.append(request)
        return None


class BlockingCounterparty:
    """Controparte che non risponde finche' release non viene impostato"""

    def __init__(self):
        self.release = threading.Event()

    def request_signature(self, request):
        self.release.wait(timeout=5)
        return None


@pytest.fixture
def payee_assembler(channel_params, payee_secret, signer, test_settings):
    assembler = TransactionAssembler(
        channel_params,
        ChannelRole.PAYEE,
        payee_secret,
        signer=signer,
        settings=test_settings,
    )
    yield assembler
    assembler.shutdown()


@pytest.fixture
def payer_assembler(channel_params, payer_secret, signer, test_settings, payee_assembler):
    """Payer con il payee come controparte (stesso processo)"""
    assembler = TransactionAssembler(
        channel_params,
        ChannelRole.PAYER,
        payer_secret,
        signer=signer,
        counterparty=payee_assembler,
        settings=test_settings,
    )
    yield assembler
    assembler.shutdown()


@pytest.fixture
def funded_channel(payer_assembler, payee_assembler, funding_inputs):
    """Coppia (payer, payee) con funding confermata a 799_000"""
    funding = payer_assembler.build_funding(funding_inputs, fee=500, change_script=CHANGE_SCRIPT)
    payer_assembler.confirm_funding(funding_height=799_000)
    payee_assembler.confirm_funding(funding.funding_outpoint, funding_height=799_000)
    return payer_assembler, payee_assembler


@pytest.fixture
def signing_counterparty(payee_secret, signer):
    return SigningCounterparty(payee_secret, signer)


@pytest.fixture
def wrong_key_counterparty(stranger_secret, signer):
    return SigningCounterparty(stranger_secret, signer)


@pytest.fixture
def declining_counterparty():
    return DecliningCounterparty()


@pytest.fixture
def blocking_counterparty():
    counterparty = BlockingCounterparty()
    yield counterparty
    counterparty.release.set()
