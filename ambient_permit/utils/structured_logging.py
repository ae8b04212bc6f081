"""
Logging filters: request correlation IDs, and keeping Ed25519 secret keys out
of log output.
"""

import logging
import re
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

# Per-context correlation ID storage
_correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

REDACTED = '[REDACTED]'
NO_CORRELATION_ID = '-'


class CredentialRedactionFilter(logging.Filter):
    """
    Filter that redacts secret keys from log records.

    Covers the forms an Ed25519 secret key usually takes in text:
    - 64-byte secret key as hex (128 hex chars, optional 0x)
    - 64-byte secret key as base58 (86-88 chars)
    - 64-byte secret key as padded base64 (88 chars)
    - key=value pairs such as secret=..., seed: ..., "d": "..." (JWK)

    Public keys (32 bytes, 43-44 base58 chars) pass through untouched.

    Usage:
        >>> handler = logging.StreamHandler()
        >>> handler.addFilter(CredentialRedactionFilter())
        >>> logger.addHandler(handler)
    """

    HEX_SECRET_PATTERN = re.compile(r'\b(?:0x)?[0-9a-fA-F]{128}\b')
    BASE58_SECRET_PATTERN = re.compile(r'\b[1-9A-HJ-NP-Za-km-z]{86,88}\b')
    BASE64_SECRET_PATTERN = re.compile(r'[A-Za-z0-9+/]{86}==')
    SECRET_PAIR_PATTERN = re.compile(
        r'(\b(?:secret_key|secretKey|secret|seed|private_key|privateKey|passphrase|password|d)'
        r'["\']?\s*[:=]\s*["\']?)[A-Za-z0-9+/=_\-]{20,}["\']?',
        re.IGNORECASE
    )

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Redact secrets from log record.

        Returns:
            Always True (record is never dropped, just sanitized)
        """
        if record.msg:
            record.msg = self._redact(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._redact(str(v)) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._redact(str(arg)) for arg in record.args)

        if record.exc_text:
            record.exc_text = self._redact(record.exc_text)

        return True

    def _redact(self, text: str) -> str:
        if not text:
            return text
        # Pairs first so the key name survives
        text = self.SECRET_PAIR_PATTERN.sub(r'\1' + REDACTED, text)
        text = self.HEX_SECRET_PATTERN.sub(REDACTED, text)
        text = self.BASE64_SECRET_PATTERN.sub(REDACTED, text)
        text = self.BASE58_SECRET_PATTERN.sub(REDACTED, text)
        return text


class CorrelationIdFilter(logging.Filter):
    """
    Filter that stamps each record with the current correlation ID.

    Records get a `correlation_id` attribute ("-" outside any request) so
    formatters can reference %(correlation_id)s.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _correlation_id.get() or NO_CORRELATION_ID
        return True


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set correlation ID for current context.

    Args:
        correlation_id: Correlation ID (generates one if None)

    Returns:
        The correlation ID set
    """
    if correlation_id is None:
        correlation_id = f"req_{uuid.uuid4().hex[:12]}"
    _correlation_id.set(correlation_id)
    return correlation_id


def get_correlation_id() -> Optional[str]:
    """Get current correlation ID."""
    return _correlation_id.get()


def clear_correlation_id() -> None:
    """Clear correlation ID from current context."""
    _correlation_id.set(None)


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """
    Run a block under a correlation ID, restoring the previous one on exit.

    An ID already set by the caller is reused unless one is passed in.

    Example:
        >>> with correlation_scope() as cid:
        ...     logger.info("translating request")
    """
    current = _correlation_id.get()
    if correlation_id is None:
        correlation_id = current or f"req_{uuid.uuid4().hex[:12]}"
    token = _correlation_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id.reset(token)
