"""
Permit signing.

Signs the canonical envelope bytes with Ed25519 and pairs the signature with
the precompile verification instruction that must precede the consume
instruction in the same transaction.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from ..auth.keypair import Keypair, PublicKey, verify_signature
from ..exceptions import PermitError, SigningError
from ..metrics import get_metrics, track_signing_time
from ..models import PermitEnvelopeV1
from ..chain.transaction import TransactionInstruction
from ..utils.encoding import encode_bytes
from .builder import PermitBuilder
from .codec import encode_permit_envelope
from .ed25519_program import create_ed25519_instruction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedPermit:
    """
    A signed envelope.

    The signature covers exactly encode_permit_envelope(envelope);
    verify_instruction is derived from the other fields.
    """
    envelope: PermitEnvelopeV1
    signature: bytes
    public_key: PublicKey
    verify_instruction: TransactionInstruction

    @property
    def message(self) -> bytes:
        return encode_permit_envelope(self.envelope)


@dataclass(frozen=True)
class PermitSignature:
    """Raw message/signature pair for one envelope."""
    message: bytes
    signature: bytes
    public_key: PublicKey


@dataclass(frozen=True)
class PermitSignResult:
    """
    Result of sign_permits().

    `signatures` and `messages` are plain strings when a single envelope was
    signed and lists otherwise; the *_list fields are always lists.
    """
    signatures: Union[str, List[str]]
    messages: Union[str, List[str]]
    signature_list: List[str]
    message_list: List[str]
    raw_signatures: List[bytes]
    raw_messages: List[bytes]


class PermitSigner:
    """
    Signs permit envelopes.

    Keys are always passed per call; the signer keeps no key state.
    """

    def __init__(self, builder: Optional[PermitBuilder] = None):
        """
        Initialize signer.

        Args:
            builder: Builder whose serialize() produces the signed bytes
                (the codec is used directly if not provided)
        """
        self.builder = builder

    def _serialize(self, envelope: PermitEnvelopeV1) -> bytes:
        if self.builder is not None:
            return self.builder.serialize(envelope)
        return encode_permit_envelope(envelope)

    @track_signing_time
    def sign(self, envelope: PermitEnvelopeV1, keypair: Keypair) -> SignedPermit:
        """
        Sign envelope.

        The envelope is signed as given; its authorizer should be the
        keypair's public key for the on-chain check to pass.

        Args:
            envelope: Envelope to sign
            keypair: Signing key

        Returns:
            SignedPermit with the verification instruction

        Raises:
            FieldOverflowError: If the envelope cannot be encoded
            SigningError: If signing fails
        """
        message = self._serialize(envelope)
        try:
            signature = keypair.sign(message)
        except PermitError:
            raise
        except Exception as e:
            logger.error(f"Failed to sign permit: {e}")
            raise SigningError(f"Failed to sign permit: {e}") from e

        public_key = keypair.public_key
        if envelope.authorizer != public_key:
            logger.warning(
                f"Signing key {public_key} differs from envelope authorizer {envelope.authorizer}"
            )

        verify_ix = create_ed25519_instruction(signature, public_key, message)
        logger.debug(f"Signed permit nonce={envelope.nonce} ({len(message)} bytes) with {public_key}")
        return SignedPermit(
            envelope=envelope,
            signature=signature,
            public_key=public_key,
            verify_instruction=verify_ix,
        )

    def sign_with_session(self, envelope: PermitEnvelopeV1, session_keypair: Keypair) -> SignedPermit:
        """
        Sign as a delegated session key.

        The authorizer is replaced by the session public key before signing;
        the program then checks the session record for owner and scope.
        """
        session_envelope = envelope.with_authorizer(session_keypair.public_key)
        return self.sign(session_envelope, session_keypair)

    def verify(self, signed_permit: SignedPermit) -> bool:
        """
        Check a signed permit locally.

        Re-encodes the envelope and verifies the detached signature. This is
        a self-check only; the chain performs its own verification.
        """
        message = self._serialize(signed_permit.envelope)
        return verify_signature(signed_permit.public_key, message, signed_permit.signature)


def generate_permit_signature(envelope: PermitEnvelopeV1, keypair: Keypair) -> PermitSignature:
    """
    Encode and sign one envelope without building an instruction.

    Returns:
        PermitSignature with the canonical message and signature
    """
    message = encode_permit_envelope(envelope)
    return PermitSignature(
        message=message,
        signature=keypair.sign(message),
        public_key=keypair.public_key,
    )


def sign_permits(
    envelopes: Union[PermitEnvelopeV1, Iterable[PermitEnvelopeV1]],
    keypair: Keypair,
    encoding: str = "hex"
) -> PermitSignResult:
    """
    Sign one or many envelopes independently.

    Args:
        envelopes: One envelope or an iterable of them
        keypair: Signing key
        encoding: "hex" or "base64" for the text forms

    Returns:
        PermitSignResult; scalar `signatures`/`messages` for one envelope

    Raises:
        ValidationError: If encoding is not supported
    """
    single = isinstance(envelopes, PermitEnvelopeV1)
    batch = [envelopes] if single else list(envelopes)

    # Fail on a bad encoding before doing any signing
    encode_bytes(b"", encoding)

    raw_signatures: List[bytes] = []
    raw_messages: List[bytes] = []
    for envelope in batch:
        signed = _timed_signature(envelope, keypair)
        raw_signatures.append(signed.signature)
        raw_messages.append(signed.message)

    signature_list = [encode_bytes(sig, encoding) for sig in raw_signatures]
    message_list = [encode_bytes(msg, encoding) for msg in raw_messages]

    get_metrics().track_signed(encoding, len(batch))
    logger.info(f"Signed {len(batch)} permit(s) with {keypair.public_key} ({encoding})")

    scalar = len(batch) == 1
    return PermitSignResult(
        signatures=signature_list[0] if scalar else signature_list,
        messages=message_list[0] if scalar else message_list,
        signature_list=signature_list,
        message_list=message_list,
        raw_signatures=raw_signatures,
        raw_messages=raw_messages,
    )


@track_signing_time
def _timed_signature(envelope: PermitEnvelopeV1, keypair: Keypair) -> PermitSignature:
    return generate_permit_signature(envelope, keypair)


def sign_permits_hex(
    envelopes: Union[PermitEnvelopeV1, Iterable[PermitEnvelopeV1]],
    keypair: Keypair
) -> PermitSignResult:
    return sign_permits(envelopes, keypair, encoding="hex")


def sign_permits_base64(
    envelopes: Union[PermitEnvelopeV1, Iterable[PermitEnvelopeV1]],
    keypair: Keypair
) -> PermitSignResult:
    return sign_permits(envelopes, keypair, encoding="base64")
