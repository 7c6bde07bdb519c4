"""
One-Way Channel - Configuration Management
============================================
Gestione centralizzata configurazione con Pydantic Settings.
Supporta environment variables, file .env, override runtime.

Security Level: HIGH
Version: 1.0.0

Features:
- Validazione automatica tipi
- Environment variables con prefisso ONEWAYCHANNEL_
- File .env support
- Preset development / production
"""

from pathlib import Path
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from one_way_channel.constants import (
    DEFAULT_DUST_THRESHOLD,
    DEFAULT_COMMITMENT_FEE,
    DEFAULT_REFUND_FEE,
    DEFAULT_SIGNING_TIMEOUT_SECONDS,
    DEFAULT_TX_VERSION,
)


# ============================================================================
# MAIN CONFIGURATION CLASS
# ============================================================================

class ChannelSettings(BaseSettings):
    """
    Configurazione costruzione transazioni di canale.

    Example:
        # Da environment
        export ONEWAYCHANNEL_DUST_THRESHOLD=330
        export ONEWAYCHANNEL_SIGNING_TIMEOUT_SECONDS=5

        # Da codice
        settings = ChannelSettings(commitment_fee=250)
    """

    model_config = SettingsConfigDict(
        env_prefix='ONEWAYCHANNEL_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    # ========================================================================
    # NETWORK
    # ========================================================================

    network: str = Field(
        default="mainnet",
        description="Network: mainnet, testnet, signet, regtest"
    )

    # ========================================================================
    # TRANSACTION POLICY
    # ========================================================================

    tx_version: int = Field(
        default=DEFAULT_TX_VERSION,
        ge=1,
        le=2,
        description="nVersion delle transazioni costruite"
    )

    dust_threshold: int = Field(
        default=DEFAULT_DUST_THRESHOLD,
        ge=0,
        description="Output sotto questa soglia vengono omessi (Satoshi)"
    )

    commitment_fee: int = Field(
        default=DEFAULT_COMMITMENT_FEE,
        ge=0,
        description="Fee fissa commitment transaction (Satoshi)"
    )

    refund_fee: int = Field(
        default=DEFAULT_REFUND_FEE,
        ge=0,
        description="Fee fissa refund transaction (Satoshi)"
    )

    fee_rate: Optional[float] = Field(
        default=None,
        ge=0,
        description="Fee rate sat/vB; se impostato sostituisce le fee fisse"
    )

    # ========================================================================
    # SIGNING
    # ========================================================================

    signing_timeout_seconds: float = Field(
        default=DEFAULT_SIGNING_TIMEOUT_SECONDS,
        gt=0,
        le=3600,
        description="Timeout richiesta firma controparte (secondi)"
    )

    signing_slow_threshold_ms: int = Field(
        default=2000,
        ge=1,
        description="Soglia warning per round trip firma (ms)"
    )

    # ========================================================================
    # AUDIT
    # ========================================================================

    keep_commitment_history: bool = Field(
        default=True,
        description="Mantieni commitment superati come audit trail"
    )

    max_commitment_history: int = Field(
        default=10_000,
        ge=0,
        description="Numero massimo commitment superati in memoria"
    )

    audit_log_enabled: bool = Field(
        default=False,
        description="Scrivi audit.log su file"
    )

    # ========================================================================
    # LOGGING
    # ========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    log_to_file: bool = Field(
        default=False,
        description="Salva log su file"
    )

    log_to_console: bool = Field(
        default=True,
        description="Log su console"
    )

    log_dir: Path = Field(
        default=Path("./logs"),
        description="Directory log files"
    )

    log_format: str = Field(
        default="json",
        description="Formato log: json, text"
    )

    log_rotation_mb: int = Field(
        default=100,
        ge=1,
        description="Dimensione max file log prima rotation (MB)"
    )

    log_retention_days: int = Field(
        default=30,
        ge=1,
        description="File di backup log mantenuti"
    )

    # ========================================================================
    # VALIDATORS
    # ========================================================================

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Valida log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log_level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Valida formato log"""
        v_lower = v.lower()
        if v_lower not in ('json', 'text'):
            raise ValueError(f"Invalid log_format: {v}. Must be json or text")
        return v_lower

    @field_validator('network')
    @classmethod
    def validate_network(cls, v: str) -> str:
        """Valida network type"""
        valid_networks = ['mainnet', 'testnet', 'signet', 'regtest']
        v_lower = v.lower()
        if v_lower not in valid_networks:
            raise ValueError(f"Invalid network: {v}. Must be one of {valid_networks}")
        return v_lower

    # ========================================================================
    # HELPER METHODS
    # ========================================================================

    def is_mainnet(self) -> bool:
        """Check se mainnet"""
        return self.network == "mainnet"

    def to_dict(self) -> dict:
        """Serializza config"""
        return self.model_dump()

    def to_json(self) -> str:
        """Serializza config in JSON"""
        return self.model_dump_json(indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> "ChannelSettings":
        """Carica config da JSON"""
        return cls.model_validate_json(json_str)

    def __repr__(self) -> str:
        return (
            f"ChannelSettings("
            f"network={self.network}, "
            f"dust_threshold={self.dust_threshold}, "
            f"commitment_fee={self.commitment_fee}, "
            f"signing_timeout={self.signing_timeout_seconds}s)"
        )


# ============================================================================
# SINGLETON INSTANCE
# ============================================================================

@lru_cache(maxsize=1)
def get_settings() -> ChannelSettings:
    """
    Ottieni singleton instance di ChannelSettings.

    Returns:
        ChannelSettings: Instance configurazione (cached)
    """
    return ChannelSettings()


def reload_settings() -> ChannelSettings:
    """
    Ricarica settings (invalida cache).

    Usare quando si cambiano environment variables runtime.
    """
    get_settings.cache_clear()
    return get_settings()


def override_settings(**kwargs) -> ChannelSettings:
    """
    Settings con valori custom (non tocca il singleton).

    Example:
        >>> settings = override_settings(dust_threshold=0, commitment_fee=0)
    """
    return ChannelSettings(**kwargs)


# ============================================================================
# PROFILE PRESETS
# ============================================================================

def get_development_config() -> ChannelSettings:
    """
    Config preset per development.

    Features:
    - Regtest
    - Log DEBUG su console
    - Timeout firma breve
    """
    return ChannelSettings(
        network="regtest",
        log_level="DEBUG",
        signing_timeout_seconds=5.0,
    )


def get_production_config() -> ChannelSettings:
    """
    Config preset per production (mainnet).

    Features:
    - Log WARNING su file JSON
    - Audit log abilitato
    """
    return ChannelSettings(
        network="mainnet",
        log_level="WARNING",
        log_to_file=True,
        audit_log_enabled=True,
    )


# ============================================================================
# CONFIGURATION VALIDATION
# ============================================================================

def validate_config(config: ChannelSettings) -> tuple[bool, list[str]]:
    """
    Valida coerenza configurazione.

    Args:
        config: ChannelSettings da validare

    Returns:
        tuple: (is_valid, errors_list)
    """
    errors = []

    if config.fee_rate is None and config.commitment_fee == 0 and config.is_mainnet():
        errors.append("commitment_fee=0 without fee_rate will not relay on mainnet")

    if config.tx_version < 2:
        errors.append("tx_version=1 disables OP_CHECKSEQUENCEVERIFY refunds")

    if config.refund_fee + config.dust_threshold == 0 and config.is_mainnet():
        errors.append("refund_fee and dust_threshold are both zero on mainnet")

    if config.max_commitment_history == 0 and config.keep_commitment_history:
        errors.append("keep_commitment_history=True with max_commitment_history=0")

    return (len(errors) == 0, errors)


__all__ = [
    "ChannelSettings",
    "get_settings",
    "reload_settings",
    "override_settings",
    "get_development_config",
    "get_production_config",
    "validate_config",
]
