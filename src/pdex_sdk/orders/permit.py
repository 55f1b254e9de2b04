"""Permit Delegation for pDEX orders.

A seller signs an EIP-2612 Permit under the token's domain, authorizing
the exchange to move up to ``value`` tokens until ``deadline``. The
permit binds the owner's *current* token nonce; the token contract
increments that nonce when the permit is consumed, so a signed permit
can be used at most once.

Lifecycle per (owner, spender, token):

    UNISSUED -> SIGNED -> CONSUMED | EXPIRED

Only the settlement layer moves a permit to CONSUMED. Locally we can only
classify a permit against a nonce snapshot supplied by the caller.
"""

import logging
import time
from enum import Enum
from typing import Optional, Protocol

from eth_utils import is_address, to_checksum_address

from ..eip712 import (
    Domain,
    MessageSigner,
    Signature,
    VerificationResult,
    check_signature,
    sign_typed_data,
)
from .types import PERMIT_SCHEMA, Permit

logger = logging.getLogger(__name__)

# Deadline bounds
MIN_DEADLINE_SECONDS = 60  # 1 minute
MAX_DEADLINE_SECONDS = 30 * 86400  # 30 days


class PermitState(Enum):
    UNISSUED = "unissued"
    SIGNED = "signed"
    CONSUMED = "consumed"
    EXPIRED = "expired"


class NonceSource(Protocol):
    """Read access to on-chain nonces (ERC-20 ``nonces(owner)`` or the exchange's)."""

    def get_nonce(self, owner: str, contract: str) -> int:
        """Return ``owner``'s current nonce on ``contract``.

        The value is a snapshot; it may be stale by the time the signed
        message reaches the chain.
        """
        ...


def fetch_nonce(source: NonceSource, owner: str, contract: str) -> int:
    """Read ``owner``'s current nonce on ``contract`` from ``source``.

    Raises:
        ValueError: If the source returns something that is not a uint256
    """
    nonce = source.get_nonce(owner, contract)
    if isinstance(nonce, bool) or not isinstance(nonce, int) or nonce < 0:
        raise ValueError(f"Nonce source returned an invalid nonce: {nonce!r}")
    logger.debug("Nonce snapshot for %s on %s: %d", owner, contract, nonce)
    return nonce


def create_permit(
    owner: str,
    spender: str,
    value: int,
    nonce: int,
    deadline_seconds: int = 3600,
    now: Optional[int] = None,
) -> Permit:
    """Create a permit object.

    Args:
        owner: Token holder granting the allowance
        spender: Address allowed to spend (the exchange contract)
        value: Maximum token amount
        nonce: Owner's current token nonce
        deadline_seconds: Seconds from now until the permit expires (default: 1 hour)
        now: Current unix time; defaults to the system clock

    Returns:
        Permit object

    Raises:
        ValueError: If an address is invalid, the value is negative,
            or the deadline is out of bounds
    """
    if not is_address(owner):
        raise ValueError(f"Invalid owner address: {owner}")
    if not is_address(spender):
        raise ValueError(f"Invalid spender address: {spender}")
    if value < 0:
        raise ValueError(f"Invalid permit value: {value}. Must be non-negative")

    if deadline_seconds < MIN_DEADLINE_SECONDS:
        raise ValueError(
            f"Deadline too short: {deadline_seconds}s. Minimum: {MIN_DEADLINE_SECONDS}s"
        )
    if deadline_seconds > MAX_DEADLINE_SECONDS:
        raise ValueError(
            f"Deadline too long: {deadline_seconds}s. Maximum: {MAX_DEADLINE_SECONDS}s"
        )

    now = int(time.time()) if now is None else now

    return Permit(
        owner=to_checksum_address(owner),
        spender=to_checksum_address(spender),
        value=value,
        nonce=nonce,
        deadline=now + deadline_seconds,
    )


def sign_permit(permit: Permit, token_domain: Domain, signer: MessageSigner) -> Signature:
    """Sign a permit under the token's domain.

    Raises:
        ValueError: If the signer is not the permit owner
    """
    if to_checksum_address(signer.address) != permit.owner:
        raise ValueError(f"Signer {signer.address} is not the permit owner {permit.owner}")
    return sign_typed_data(token_domain, PERMIT_SCHEMA, "Permit", permit.to_message(), signer)


def check_permit_signature(
    permit: Permit,
    signature: Signature,
    token_domain: Domain,
    expected_owner: Optional[str] = None,
) -> VerificationResult:
    return check_signature(
        token_domain,
        PERMIT_SCHEMA,
        "Permit",
        permit.to_message(),
        signature,
        expected_owner or permit.owner,
    )


def verify_permit(
    permit: Permit,
    signature: Signature,
    token_domain: Domain,
    expected_owner: Optional[str] = None,
) -> bool:
    """Verify a permit signature locally.

    This checks cryptographic validity only. Whether the permit can still
    be consumed depends on chain state; see :func:`is_permit_live`.

    Args:
        permit: Permit that was signed
        signature: Signature to check
        token_domain: Domain of the token contract
        expected_owner: Expected signer (default: ``permit.owner``)

    Returns:
        True if the signature is valid and from the expected owner
    """
    result = check_permit_signature(permit, signature, token_domain, expected_owner)
    return result is VerificationResult.VALID


def permit_state(
    permit: Permit,
    signature: Optional[Signature],
    current_nonce: int,
    now: Optional[int] = None,
) -> PermitState:
    """Classify a permit against a nonce snapshot and the clock.

    A current nonce beyond the permit's nonce means the permit (or a
    competing one signed later with the same nonce) has been consumed.
    """
    if signature is None:
        return PermitState.UNISSUED
    if current_nonce > permit.nonce:
        return PermitState.CONSUMED
    now = int(time.time()) if now is None else now
    if now > permit.deadline:
        return PermitState.EXPIRED
    return PermitState.SIGNED


def is_permit_live(
    permit: Permit,
    signature: Signature,
    nonce_source: NonceSource,
    token_address: str,
    now: Optional[int] = None,
) -> bool:
    """Return True if the settlement layer could still consume the permit.

    Requires the owner's current token nonce to equal the permit nonce and
    the deadline not to have passed. A True result is only as fresh as the
    nonce read.
    """
    current_nonce = fetch_nonce(nonce_source, permit.owner, token_address)
    if current_nonce != permit.nonce:
        return False
    return permit_state(permit, signature, current_nonce, now) is PermitState.SIGNED
