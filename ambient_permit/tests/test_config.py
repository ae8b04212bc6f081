"""Tests for settings loading."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from ambient_permit.chain.addresses import DEFAULT_PERMIT_PROGRAM_ID
from ambient_permit.config import PermitSettings, get_settings
from ambient_permit.models import ClusterType


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate from the developer's environment and .env file."""
    monkeypatch.chdir(tmp_path)
    for name in ("PROGRAM_ID", "CLUSTER", "DEFAULT_EXPIRY_SECONDS", "HL_WINDOW_K",
                 "SIGNATURE_ENCODING", "LOG_LEVEL", "ENABLE_METRICS"):
        monkeypatch.delenv(f"AMBIENT_PERMIT_{name}", raising=False)


class TestPermitSettings:
    """Environment-driven configuration."""

    def test_defaults(self):
        settings = get_settings()
        assert settings.program_id == DEFAULT_PERMIT_PROGRAM_ID
        assert settings.cluster == ClusterType.TESTNET
        assert settings.default_expiry_seconds == 60
        assert settings.default_max_fee_quote == 1_000_000
        assert settings.hl_window_k == 128
        assert settings.signature_encoding == "hex"
        assert settings.enable_metrics is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("AMBIENT_PERMIT_CLUSTER", "devnet")
        monkeypatch.setenv("AMBIENT_PERMIT_HL_WINDOW_K", "32")
        monkeypatch.setenv("AMBIENT_PERMIT_SIGNATURE_ENCODING", "base64")
        settings = PermitSettings()
        assert settings.cluster == ClusterType.DEVNET
        assert settings.hl_window_k == 32
        assert settings.signature_encoding == "base64"

    def test_numeric_cluster(self, monkeypatch):
        monkeypatch.setenv("AMBIENT_PERMIT_CLUSTER", "3")
        assert PermitSettings().cluster == ClusterType.LOCALNET

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("AMBIENT_PERMIT_DEFAULT_EXPIRY_SECONDS=90\n")
        assert PermitSettings().default_expiry_seconds == 90

    def test_unknown_cluster(self):
        with pytest.raises(PydanticValidationError):
            PermitSettings(cluster="moonnet")

    def test_invalid_program_id(self):
        with pytest.raises(PydanticValidationError):
            PermitSettings(program_id="0OIl")

    @pytest.mark.parametrize("field,value", [
        ("hl_window_k", 0),
        ("hl_window_k", 256),
        ("default_expiry_seconds", 0),
        ("signature_encoding", "base58"),
    ])
    def test_out_of_range(self, field, value):
        with pytest.raises(PydanticValidationError):
            PermitSettings(**{field: value})

    def test_program_public_key(self):
        assert str(PermitSettings().program_public_key) == DEFAULT_PERMIT_PROGRAM_ID

    def test_repr(self):
        text = repr(PermitSettings())
        assert "TESTNET" in text
        assert DEFAULT_PERMIT_PROGRAM_ID in text
