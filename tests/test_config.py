"""
One-Way Channel - Configuration & Logging Tests
=================================================
"""

import json
import pytest
from pydantic import ValidationError as PydanticValidationError

import logging

from one_way_channel.config import (
    get_settings,
    reload_settings,
    ChannelSettings,
    override_settings,
    get_development_config,
    get_production_config,
    validate_config,
)
from one_way_channel.errors import NonMonotonicPayment, format_validation_error
from one_way_channel.logging_setup import (
    ROOT_LOGGER_NAME,
    AuditLogger,
    get_logger,
    setup_logging,
    setup_logging_from_settings,
)


class TestChannelSettings:
    """Test ChannelSettings"""

    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        settings = ChannelSettings()

        assert settings.dust_threshold == 546
        assert settings.commitment_fee == 100
        assert settings.refund_fee == 100
        assert settings.tx_version == 2
        assert settings.fee_rate is None

    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("ONEWAYCHANNEL_DUST_THRESHOLD", "330")
        monkeypatch.setenv("ONEWAYCHANNEL_SIGNING_TIMEOUT_SECONDS", "5")

        settings = ChannelSettings()
        assert settings.dust_threshold == 330
        assert settings.signing_timeout_seconds == 5.0

    def test_invalid_values(self):
        with pytest.raises(PydanticValidationError):
            ChannelSettings(network="moonnet")
        with pytest.raises(PydanticValidationError):
            ChannelSettings(signing_timeout_seconds=0)
        with pytest.raises(PydanticValidationError):
            ChannelSettings(tx_version=3)

    def test_normalisation(self):
        settings = override_settings(network="REGTEST", log_level="debug")
        assert settings.network == "regtest"
        assert settings.log_level == "DEBUG"

    def test_json_round_trip(self, test_settings):
        restored = ChannelSettings.from_json(test_settings.to_json())
        assert restored.dust_threshold == test_settings.dust_threshold
        assert restored.network == "regtest"

    def test_presets(self):
        assert get_development_config().network == "regtest"
        production = get_production_config()
        assert production.audit_log_enabled
        assert production.is_mainnet()

    def test_reload_settings(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("ONEWAYCHANNEL_COMMITMENT_FEE", "250")
        assert reload_settings().commitment_fee == 250

        monkeypatch.setenv("ONEWAYCHANNEL_COMMITMENT_FEE", "300")
        assert get_settings().commitment_fee == 250
        assert reload_settings().commitment_fee == 300
        get_settings.cache_clear()

    def test_validate_config(self):
        ok, errors = validate_config(override_settings(network="regtest"))
        assert ok and errors == []

        ok, errors = validate_config(override_settings(network="mainnet", tx_version=1, commitment_fee=0))
        assert not ok
        assert len(errors) == 2


class TestErrors:
    """Test error payloads"""

    def test_error_dict(self):
        error = NonMonotonicPayment("too low", details={"channel_id": "c", "attempted": 5})
        data = error.to_dict()

        assert data["error"] == "NonMonotonicPayment"
        assert data["details"]["attempted"] == 5
        assert "[NonMonotonicPayment]" in str(error)

    def test_format_validation_error(self):
        error = format_validation_error("cumulative_payment", -1, "non-negative")
        assert error.code == "INVALID_SHAPE"
        assert error.details["field"] == "cumulative_payment"


class TestAuditLogger:
    """Test audit trail file"""

    def test_records_written(self, temp_data_dir):
        audit = AuditLogger(temp_data_dir)
        audit.log_commitment_accepted("chan", 1, 1_000, "ab" * 32)
        audit.log_settlement("chan", "refund", "cd" * 32, 99_900)
        audit.close()

        lines = (temp_data_dir / "audit.log").read_text(encoding="utf-8").splitlines()
        records = [json.loads(line)["extra_data"] for line in lines]

        assert len(records) == 2
        assert records[0]["action"] == "commitment_accepted"
        assert records[0]["cumulative_payment"] == 1_000
        assert records[1]["action"] == "settlement_refund"

    def test_assembler_audit(self, funded_channel, temp_data_dir):
        payer, _ = funded_channel
        payer.audit = AuditLogger(temp_data_dir)
        payer.pay(1_000)
        payer.pay(2_000)
        payer.audit.close()

        actions = [
            json.loads(line)["extra_data"]["action"]
            for line in (temp_data_dir / "audit.log").read_text(encoding="utf-8").splitlines()
        ]
        assert actions == ["commitment_accepted", "commitment_superseded", "commitment_accepted"]


class TestChannelLogger:
    """Test bound context"""

    def test_bind(self):
        logger = get_logger("test")
        bound = logger.bind(channel_id="abc")

        assert bound.name == logger.name
        assert bound is not logger


@pytest.fixture
def reset_root_logger():
    yield
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.setLevel(logging.NOTSET)


class TestSetupLogging:
    """Test handler configuration"""

    def test_json_file(self, temp_data_dir, reset_root_logger):
        logger = setup_logging(
            log_level="debug",
            log_to_file=True,
            log_dir=temp_data_dir,
            enable_console=False,
        )
        get_logger("assembler").bind(channel_id="abc").info("Commitment accepted", {"cumulative": 1_000})
        for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
            handler.flush()

        assert logger.name == ROOT_LOGGER_NAME
        record = json.loads((temp_data_dir / "onewaychannel.log").read_text(encoding="utf-8").splitlines()[-1])
        assert record["level"] == "INFO"
        assert record["logger"] == f"{ROOT_LOGGER_NAME}.assembler"
        assert record["extra_data"] == {"channel_id": "abc", "cumulative": 1_000}

    def test_from_settings(self, test_settings, reset_root_logger):
        settings = test_settings.model_copy(update={"log_level": "WARNING", "log_to_console": True})
        setup_logging_from_settings(settings)

        root = logging.getLogger(ROOT_LOGGER_NAME)
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
