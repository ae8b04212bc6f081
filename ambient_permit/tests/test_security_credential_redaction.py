"""
Test secret-key redaction in logs.

Ed25519 secret keys (and the seeds they come from) must never reach log
output, whether logged directly, as key=value pairs, inside a JWK, or in
an exception message.
"""

import base64
import json
import logging
from io import StringIO

import pytest
from pythonjsonlogger.json import JsonFormatter

from ambient_permit.auth.keypair import Keypair
from ambient_permit.exchange.adapter import (
    build_envelopes_from_exchange_request,
    create_exchange_context,
    sign_exchange_request,
)
from ambient_permit.logging_config import build_logging_config, get_logger
from ambient_permit.utils.encoding import b58encode
from ambient_permit.utils.structured_logging import (
    NO_CORRELATION_ID,
    REDACTED,
    CorrelationIdFilter,
    CredentialRedactionFilter,
    clear_correlation_id,
    correlation_scope,
    get_correlation_id,
    set_correlation_id,
)


@pytest.fixture
def context(markets, program_id, keypair, clock):
    return create_exchange_context(markets, program_id, keypair.public_key, clock=clock)


@pytest.fixture
def secret_keypair():
    return Keypair.from_seed(bytes([42] * 32))


@pytest.fixture
def capture():
    """Logger whose handler carries the redaction filter; yields (logger, stream)."""
    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.DEBUG)
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter('%(message)s'))
    handler.addFilter(CredentialRedactionFilter())
    logger.addHandler(handler)
    yield logger, stream
    logger.removeHandler(handler)


class TestCredentialRedactionFilter:
    """Secret key forms are masked."""

    def test_hex_secret_key(self, capture, secret_keypair):
        logger, stream = capture
        secret = secret_keypair.secret_key.hex()
        logger.info(f"Loaded key {secret}")

        output = stream.getvalue()
        assert secret not in output
        assert REDACTED in output

    def test_prefixed_hex_secret_key(self, capture, secret_keypair):
        logger, stream = capture
        secret = "0x" + secret_keypair.secret_key.hex()
        logger.info("Loaded key %s", secret)
        assert secret_keypair.secret_key.hex() not in stream.getvalue()

    def test_base58_secret_key(self, capture, secret_keypair):
        logger, stream = capture
        secret = b58encode(secret_keypair.secret_key)
        logger.info(f"wallet={secret}")
        assert secret not in stream.getvalue()

    def test_base64_secret_key(self, capture, secret_keypair):
        logger, stream = capture
        secret = base64.b64encode(secret_keypair.secret_key).decode()
        logger.warning(f"Fallback key material {secret}")
        assert secret not in stream.getvalue()

    def test_key_value_pairs(self, capture):
        logger, stream = capture
        seed = "c2VlZHNlZWRzZWVkc2VlZHNlZWRzZWVk"
        logger.info(f"config seed: {seed}, passphrase={seed}")

        output = stream.getvalue()
        assert seed not in output
        assert f"seed: {REDACTED}" in output

    def test_jwk_private_component(self, capture):
        logger, stream = capture
        d = "nWGxne_9WmC6hEr0kuwsxERJxWl7MmkZcDusAxyuf2A"
        jwk = json.dumps({"kty": "OKP", "crv": "Ed25519", "d": d})
        logger.info(f"Importing {jwk}")
        assert d not in stream.getvalue()

    def test_secret_in_args_dict(self, capture, secret_keypair):
        logger, stream = capture
        secret = secret_keypair.secret_key.hex()
        logger.info("key %(key)s", {"key": secret})
        assert secret not in stream.getvalue()

    def test_secret_in_exception_message(self, capture, secret_keypair):
        logger, stream = capture
        secret = secret_keypair.secret_key.hex()
        try:
            raise ValueError(f"Failed to load key: {secret}")
        except ValueError as e:
            logger.error(str(e))
        assert secret not in stream.getvalue()

    def test_public_key_passes_through(self, capture, secret_keypair):
        logger, stream = capture
        message = f"Signed permit with {secret_keypair.public_key} nonce=1700000000123"
        logger.info(message)
        assert message in stream.getvalue()

    def test_keypair_repr_has_no_secret(self, secret_keypair):
        text = repr(secret_keypair)
        assert secret_keypair.secret_key.hex() not in text
        assert str(secret_keypair.public_key) in text


class TestLoggingConfig:
    """dictConfig wiring."""

    def test_every_handler_redacts(self, tmp_path):
        config = build_logging_config(log_file=str(tmp_path / "permit.log"))
        assert set(config["handlers"]) == {"console", "file", "error_file"}
        for handler in config["handlers"].values():
            assert handler["filters"] == ["redact", "correlation"]
        assert (tmp_path / "permit_errors.log").name in config["handlers"]["error_file"]["filename"]

    def test_json_formatter(self):
        config = build_logging_config(level="debug", json_format=True)
        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["loggers"]["ambient_permit"]["level"] == "DEBUG"
        assert "file" not in config["handlers"]

    def test_default_config_is_not_mutated(self):
        build_logging_config(level="ERROR", json_format=True)
        assert build_logging_config()["handlers"]["console"]["formatter"] == "standard"

    def test_get_logger_namespacing(self):
        assert get_logger("relayer").name == "ambient_permit.relayer"
        assert get_logger("ambient_permit.permit").name == "ambient_permit.permit"

    def test_json_lines_carry_correlation_id(self):
        config = build_logging_config(json_format=True)
        logger = logging.getLogger("test_json_correlation")
        logger.setLevel(logging.INFO)
        stream = StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(JsonFormatter(config["formatters"]["json"]["format"]))
        handler.addFilter(CorrelationIdFilter())
        logger.addHandler(handler)
        try:
            with correlation_scope("req_json"):
                logger.info("permit signed")
            record = json.loads(stream.getvalue())
        finally:
            logger.removeHandler(handler)

        assert record["correlation_id"] == "req_json"
        assert record["message"] == "permit signed"


@pytest.fixture
def correlated_capture():
    """Capture adapter log lines prefixed with their correlation id."""
    logger = logging.getLogger("ambient_permit.exchange.adapter")
    previous_level = logger.level
    logger.setLevel(logging.INFO)
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter('%(correlation_id)s %(message)s'))
    handler.addFilter(CorrelationIdFilter())
    logger.addHandler(handler)
    yield stream
    logger.removeHandler(handler)
    logger.setLevel(previous_level)


class TestCorrelationIds:
    """Correlation ids in context and on log records."""

    def test_set_and_clear(self):
        try:
            correlation_id = set_correlation_id()
            assert correlation_id.startswith("req_")
            assert get_correlation_id() == correlation_id
        finally:
            clear_correlation_id()
        assert get_correlation_id() is None

    def test_scope_restores_previous_id(self):
        with correlation_scope("outer") as outer:
            assert outer == "outer"
            with correlation_scope() as inner:
                assert inner == "outer"
            with correlation_scope("other") as other:
                assert get_correlation_id() == other == "other"
            assert get_correlation_id() == "outer"
        assert get_correlation_id() is None

    def test_filter_stamps_records(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        CorrelationIdFilter().filter(record)
        assert record.correlation_id == NO_CORRELATION_ID
        with correlation_scope("req_abc"):
            CorrelationIdFilter().filter(record)
        assert record.correlation_id == "req_abc"

    def test_each_exchange_request_gets_its_own_id(self, correlated_capture, context):
        request = {"action": {"type": "noop"}, "nonce": 1_700_000_000_500}
        build_envelopes_from_exchange_request(request, context)
        build_envelopes_from_exchange_request(request, context)

        ids = [line.split(" ", 1)[0] for line in correlated_capture.getvalue().splitlines()]
        assert len(ids) == 2
        assert all(cid.startswith("req_") for cid in ids)
        assert ids[0] != ids[1]
        assert get_correlation_id() is None

    def test_caller_id_is_reused(self, correlated_capture, context, keypair):
        request = {"action": {"type": "noop"}, "nonce": 1_700_000_000_500}
        with correlation_scope("relay-7"):
            sign_exchange_request(request, context, keypair)

        lines = correlated_capture.getvalue().splitlines()
        assert lines
        assert all(line.startswith("relay-7 ") for line in lines)
