"""
End-to-end permit flow.

Exchange JSON in, transaction instructions out: translate, sign, derive the
replay records and assemble the verify + consume pair, then check that the
verification instruction carries exactly the bytes the program will rebuild.
"""

import pytest

from ambient_permit import (
    Keypair,
    PermitSigner,
    PublicKey,
    build_envelopes_from_exchange_request,
    create_exchange_context,
    decode_permit_envelope,
    encode_permit_envelope,
)
from ambient_permit.auth.keypair import verify_signature
from ambient_permit.chain.addresses import ED25519_PROGRAM_ID
from ambient_permit.chain.instructions import (
    ConsumePermitAccounts,
    SessionScope,
    accounts_for_replay_mode,
    create_consume_permit_instruction,
    create_delegate_session_instruction,
    required_scope,
)
from ambient_permit.chain.pda import PermitPdas
from ambient_permit.models import Side, TimeInForceCode
from ambient_permit.permit.ed25519_program import parse_ed25519_instruction_data

BTC_ORDER = {
    "action": {
        "type": "order",
        "order": {
            "a": 0,
            "b": True,
            "p": "131425",
            "s": "0.00021",
            "r": False,
            "t": {"limit": {"tif": "Ioc"}},
            "c": "1",
        },
    },
    "nonce": 1_700_000_000_500,
}


@pytest.fixture
def context(markets, program_id, keypair, clock):
    return create_exchange_context(markets, program_id, keypair.public_key, clock=clock)


def _consume_accounts(program_id, envelope, replay, submitter):
    action = envelope.action
    per_order, _ = PermitPdas.per_order_pda(program_id, action.market_id, envelope.authorizer, 0)
    filler = Keypair.from_seed(bytes([99] * 32)).public_key
    return ConsumePermitAccounts(
        submitter=submitter,
        global_state=filler,
        cma=filler,
        market=filler,
        per_order_pda=per_order,
        market_order_log=filler,
        rent_payer=submitter,
        session_pda=replay.session_pda,
        nonce_window_pda=replay.nonce_window_pda,
        allowance_pda=replay.allowance_pda,
        used_nonce_pda=replay.used_nonce_pda,
    )


class TestOwnerSignedFlow:
    """Owner key signs its own order."""

    def test_order_to_instructions(self, context, program_id, keypair):
        (envelope,) = build_envelopes_from_exchange_request(BTC_ORDER, context)
        action = envelope.action
        assert action.market_id == 1
        assert action.qty == 21_000
        assert action.price == 131_425_000_000
        assert action.tif.code == TimeInForceCode.IOC
        assert action.side == Side.BID

        signed = PermitSigner().sign(envelope, keypair)
        replay = accounts_for_replay_mode(program_id, envelope)
        accounts = _consume_accounts(program_id, envelope, replay, keypair.public_key)
        verify_ix, consume_ix = create_consume_permit_instruction(program_id, signed, accounts)

        # Verify instruction carries the canonical bytes and a valid signature
        assert verify_ix.program_id == ED25519_PROGRAM_ID
        signature, public_key, message = parse_ed25519_instruction_data(verify_ix.data)
        assert message == encode_permit_envelope(envelope)
        assert public_key == keypair.public_key
        assert verify_signature(public_key, message, signature)
        assert decode_permit_envelope(message) == envelope

        # Consume instruction references the same signature and the window record
        assert consume_ix.data[2:] == signature
        assert consume_ix.keys[-1].pubkey == PermitPdas.nonce_window_pda(program_id, keypair.public_key)[0]
        assert len(consume_ix.keys) == 10


class TestSessionSignedFlow:
    """Owner delegates to a session key which then signs."""

    def test_delegated_session(self, context, program_id, keypair, session_keypair):
        owner = keypair.public_key
        session = session_keypair.public_key
        (envelope,) = build_envelopes_from_exchange_request(BTC_ORDER, context)

        session_pda, _ = PermitPdas.session_pda(program_id, owner, session)
        scope = required_scope(envelope.action)
        delegate_ix = create_delegate_session_instruction(
            program_id, owner, session,
            expires_unix=envelope.expires_unix,
            scopes=scope | SessionScope.CANCEL,
            session_pda=session_pda,
            rent_payer=owner,
        )
        assert delegate_ix.keys[1].pubkey == session_pda

        signed = PermitSigner().sign_with_session(envelope, session_keypair)
        assert signed.envelope.authorizer == session

        replay = accounts_for_replay_mode(program_id, signed.envelope, owner=owner)
        assert replay.session_pda == session_pda
        accounts = _consume_accounts(program_id, signed.envelope, replay, owner)
        verify_ix, consume_ix = create_consume_permit_instruction(program_id, signed, accounts)

        _, public_key, message = parse_ed25519_instruction_data(verify_ix.data)
        assert public_key == session
        assert PublicKey(message[34:66]) == session
        tail = [meta.pubkey for meta in consume_ix.keys[9:]]
        assert tail == [session_pda, PermitPdas.nonce_window_pda(program_id, session)[0]]
