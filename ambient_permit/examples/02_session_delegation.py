"""
Example 2: Session Key Delegation

Owner delegates a scoped session key, the session key signs a permit, and
the verify + consume instruction pair is assembled for a transaction
builder. Nothing is submitted.
"""

from ambient_permit import (
    ConsumePermitAccounts,
    Keypair,
    PermitBuilder,
    PermitPdas,
    PermitSigner,
    SessionScope,
    accounts_for_replay_mode,
    create_consume_permit_instruction,
    create_delegate_session_instruction,
    get_settings,
)
from ambient_permit.logging_config import setup_logging


def main():
    """Session delegation example."""
    setup_logging(level="DEBUG")
    settings = get_settings()
    program_id = settings.program_public_key

    owner = Keypair.generate()
    session = Keypair.generate()
    builder = PermitBuilder.from_settings(settings)

    # 1. Owner authorizes the session key for placing and cancelling
    session_pda, bump = PermitPdas.session_pda(program_id, owner.public_key, session.public_key)
    delegate_ix = create_delegate_session_instruction(
        program_id,
        owner=owner.public_key,
        session=session.public_key,
        expires_unix=builder.clock.now_millis() // 1000 + 3600,
        scopes=SessionScope.PLACE | SessionScope.CANCEL,
        session_pda=session_pda,
        rent_payer=owner.public_key,
    )
    print(f"✓ DelegateSession -> {session_pda} (bump {bump}), {len(delegate_ix.data)} data bytes")

    # 2. Session key signs a cancel-all on market 1
    envelope = builder.cancel_all(owner.public_key, market_id=1)
    signer = PermitSigner(builder)
    signed = signer.sign_with_session(envelope, session)
    assert signer.verify(signed)
    print(f"✓ Signed by session {signed.public_key}: {signed.signature.hex()[:16]}...")

    # 3. Records the program needs for this envelope
    replay = accounts_for_replay_mode(program_id, signed.envelope, owner=owner.public_key)
    per_order_pda, _ = PermitPdas.per_order_pda(program_id, 1, owner.public_key, 0)

    # Placeholder protocol accounts; a real client reads these from chain config
    placeholder = Keypair.generate().public_key
    accounts = ConsumePermitAccounts(
        submitter=owner.public_key,
        global_state=placeholder,
        cma=placeholder,
        market=placeholder,
        per_order_pda=per_order_pda,
        market_order_log=placeholder,
        rent_payer=owner.public_key,
        session_pda=replay.session_pda,
        nonce_window_pda=replay.nonce_window_pda,
    )

    # 4. Verify instruction first, consume second
    for ix in create_consume_permit_instruction(program_id, signed, accounts):
        print(f"  program={ix.program_id} accounts={len(ix.keys)} data={len(ix.data)} bytes")


if __name__ == "__main__":
    main()
