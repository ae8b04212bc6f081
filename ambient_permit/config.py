"""
Configuration management for the permit library.

Loads settings from environment variables with validation.
"""

from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .auth.keypair import PublicKey
from .chain.addresses import DEFAULT_PERMIT_PROGRAM_ID
from .exceptions import PermitError
from .models import ClusterType


class PermitSettings(BaseSettings):
    """
    Permit library settings.

    Loads from environment variables with AMBIENT_PERMIT_ prefix.
    """
    model_config = SettingsConfigDict(
        env_prefix="AMBIENT_PERMIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Domain
    program_id: str = Field(
        default=DEFAULT_PERMIT_PROGRAM_ID,
        description="Permit program address (base58)"
    )
    cluster: ClusterType = Field(default=ClusterType.TESTNET, description="Target cluster")

    # Envelope defaults
    default_expiry_seconds: int = Field(default=60, ge=1, description="Permit lifetime (seconds)")
    default_max_fee_quote: int = Field(default=1_000_000, ge=0, description="Fee cap in quote units")
    hl_window_k: int = Field(default=128, ge=1, le=255, description="Nonce window size")
    signature_encoding: Literal["hex", "base64"] = Field(
        default="hex",
        description="Text encoding for batch signatures"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=False, description="Emit JSON log lines")

    # Metrics
    enable_metrics: bool = Field(default=False, description="Enable Prometheus metrics")
    metrics_port: int = Field(default=9090, ge=1024, le=65535, description="Metrics server port")

    @field_validator("program_id")
    @classmethod
    def _check_program_id(cls, value: str) -> str:
        try:
            PublicKey(value)
        except PermitError as e:
            raise ValueError(f"Invalid program_id: {e.message}") from e
        return value

    @field_validator("cluster", mode="before")
    @classmethod
    def _parse_cluster(cls, value: Any) -> Any:
        # Accept "testnet"/"MAINNET" as well as the numeric wire value
        if isinstance(value, str):
            if value.strip().isdigit():
                return int(value)
            try:
                return ClusterType[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown cluster {value!r}") from None
        return value

    @property
    def program_public_key(self) -> PublicKey:
        return PublicKey(self.program_id)

    def __repr__(self) -> str:
        """Safe repr without sensitive data."""
        return (
            f"PermitSettings("
            f"program_id={self.program_id}, "
            f"cluster={self.cluster.name}, "
            f"metrics={self.enable_metrics}"
            ")"
        )


def get_settings() -> PermitSettings:
    """
    Get permit settings.

    Returns:
        Validated settings instance
    """
    return PermitSettings()
