"""EIP-712 Signing Service and Verification.

Provides signing functions that work with two kinds of signer capability:
- LocalSigner (an eth_account key held in process)
- TypedDataSigner (remote wallets that sign typed-data JSON, e.g. MetaMask)

Signers are always passed in explicitly; nothing here holds a wallet.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Protocol, Tuple, Union

from eth_account import Account
from eth_account.messages import SignableMessage
from eth_utils import is_address, keccak, to_checksum_address

from ..errors import KeyUnavailable
from .domain import EIP712_DOMAIN_FIELDS, Domain
from .encoding import hash_struct
from .schema import TypeSchema

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
_SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

# Upper bound for s; OpenZeppelin ECDSA rejects the malleable high-s half
_SECP256K1_HALF_N = _SECP256K1_N // 2


@dataclass(frozen=True)
class Signature:
    """Recoverable secp256k1 signature."""

    v: int
    """Recovery id (27 or 28)."""

    r: int
    s: int

    def __post_init__(self) -> None:
        if self.v in (0, 1):
            object.__setattr__(self, "v", self.v + 27)

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Signature":
        """Parse a 65-byte ``r || s || v`` signature.

        Raises:
            ValueError: If the signature is not 65 bytes
        """
        if len(raw) != 65:
            raise ValueError(f"Invalid signature length: {len(raw)} bytes. Expected 65")
        return cls(
            v=raw[64],
            r=int.from_bytes(raw[:32], "big"),
            s=int.from_bytes(raw[32:64], "big"),
        )

    @classmethod
    def from_hex(cls, signature: str) -> "Signature":
        """Parse a hex signature, with or without 0x prefix."""
        return cls.from_bytes(
            bytes.fromhex(signature[2:] if signature.startswith("0x") else signature)
        )

    def to_bytes(self) -> bytes:
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big") + bytes([self.v])

    def hex(self) -> str:
        """Return the packed signature as a 0x-prefixed hex string."""
        return "0x" + self.to_bytes().hex()

    def vrs(self) -> Tuple[int, str, str]:
        """Return ``(v, r, s)`` as passed to Solidity ``ecrecover`` / ``permit``."""
        return (
            self.v,
            "0x" + self.r.to_bytes(32, "big").hex(),
            "0x" + self.s.to_bytes(32, "big").hex(),
        )


SignatureLike = Union[Signature, bytes, str]


class VerificationResult(Enum):
    """Outcome of a signature check."""

    VALID = "valid"
    INVALID_SIGNATURE = "invalid_signature"
    """Well-formed signature from someone other than the expected signer."""

    MALFORMED_SIGNATURE = "malformed_signature"
    """Unparsable, high-s or unrecoverable signature, or one recovering to 0x0."""


class MessageSigner(Protocol):
    """Protocol for in-process signers of EIP-191 signable messages."""

    @property
    def address(self) -> str:
        ...

    def sign_message(self, signable: SignableMessage) -> Signature:
        ...


class TypedDataSigner(Protocol):
    """Protocol for signers that can sign EIP-712 typed data."""

    async def get_address(self) -> str:
        """Get the signer's address."""
        ...

    async def sign_typed_data(self, params: Dict[str, Any]) -> str:
        """Sign EIP-712 typed data.

        Args:
            params: Dict with domain, types, primaryType, and message

        Returns:
            Signature as hex string
        """
        ...


class LocalSigner:
    """Signer backed by an eth_account private key.

    Example:
        ```python
        signer = LocalSigner("0x...")
        signature = sign_typed_data(domain, schema, "Permit", message, signer)
        ```
    """

    def __init__(self, private_key: Union[str, bytes, None]):
        if not private_key:
            raise KeyUnavailable("No private key provided")
        try:
            self._account = Account.from_key(private_key)
        except Exception as exc:
            raise KeyUnavailable(f"Private key could not be loaded: {exc}") from exc

    @classmethod
    def from_env(cls, variable: str) -> "LocalSigner":
        """Load the key from an environment variable.

        Raises:
            KeyUnavailable: If the variable is unset or holds an invalid key
        """
        private_key = os.environ.get(variable)
        if not private_key:
            raise KeyUnavailable(f"Environment variable {variable} is not set")
        return cls(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    def sign_message(self, signable: SignableMessage) -> Signature:
        signed = self._account.sign_message(signable)
        return Signature(v=signed.v, r=signed.r, s=signed.s)

    def __repr__(self) -> str:
        return f"LocalSigner({self.address})"


def encode_signable(
    domain: Domain,
    schema: TypeSchema,
    primary_type: str,
    message: Mapping[str, Any],
) -> SignableMessage:
    """Build the EIP-191 version 0x01 signable for a typed message."""
    return SignableMessage(
        version=b"\x01",
        header=domain.separator(),
        body=hash_struct(schema, primary_type, message),
    )


def typed_data_digest(
    domain: Domain,
    schema: TypeSchema,
    primary_type: str,
    message: Mapping[str, Any],
) -> bytes:
    """Return ``keccak256(0x19 || 0x01 || domainSeparator || hashStruct(message))``."""
    signable = encode_signable(domain, schema, primary_type, message)
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


def to_typed_data(
    domain: Domain,
    schema: TypeSchema,
    primary_type: str,
    message: Mapping[str, Any],
) -> Dict[str, Any]:
    """Return the full typed-data JSON document for wallet signing.

    Integers in the message are rendered as decimal strings and bytes as
    0x-hex, since JS wallets read JSON numbers as doubles.
    """
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_FIELDS,
            **schema.subset(primary_type).to_eip712(),
        },
        "primaryType": primary_type,
        "domain": domain.to_message(),
        "message": _to_json_value(message),
    }


def _to_json_value(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)  # Convert to string for signing
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, Mapping):
        return {key: _to_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json_value(item) for item in value]
    return value


def sign_typed_data(
    domain: Domain,
    schema: TypeSchema,
    primary_type: str,
    message: Mapping[str, Any],
    signer: MessageSigner,
) -> Signature:
    """Sign a typed message under ``domain``.

    Args:
        domain: Domain the signature is bound to
        schema: Declared struct types
        primary_type: Type name of ``message``
        message: Field values
        signer: Signer capability holding the key

    Returns:
        Recoverable signature

    Raises:
        SchemaMismatch: If the message does not match the schema
        UnknownType: If the schema references an undeclared type
        KeyUnavailable: If the signer cannot access its key
    """
    signable = encode_signable(domain, schema, primary_type, message)
    signature = signer.sign_message(signable)
    logger.debug(
        "Signed %s for %s under domain %s/%s",
        primary_type,
        signer.address,
        domain.name,
        domain.verifying_contract,
    )
    return signature


async def sign_typed_data_with_signer(
    signer: TypedDataSigner,
    domain: Domain,
    schema: TypeSchema,
    primary_type: str,
    message: Mapping[str, Any],
) -> Signature:
    """Sign a typed message using any compatible remote signer.

    The message is validated against the schema before it is sent, so a
    malformed message never reaches the wallet.

    Raises:
        SchemaMismatch: If the message does not match the schema
        ValueError: If the wallet returns an unparsable signature
    """
    hash_struct(schema, primary_type, message)
    signature = await signer.sign_typed_data(to_typed_data(domain, schema, primary_type, message))
    return Signature.from_hex(signature)


def _as_signature(signature: SignatureLike) -> Signature:
    if isinstance(signature, Signature):
        return signature
    if isinstance(signature, str):
        return Signature.from_hex(signature)
    return Signature.from_bytes(bytes(signature))


def recover_signer(
    domain: Domain,
    schema: TypeSchema,
    primary_type: str,
    message: Mapping[str, Any],
    signature: SignatureLike,
) -> str:
    """Recover the checksummed address that signed ``message``.

    Raises:
        ValueError: If the signature cannot be parsed or recovered
    """
    parsed = _as_signature(signature)
    signable = encode_signable(domain, schema, primary_type, message)
    return Account.recover_message(signable, vrs=(parsed.v, parsed.r, parsed.s))


def check_signature(
    domain: Domain,
    schema: TypeSchema,
    primary_type: str,
    message: Mapping[str, Any],
    signature: SignatureLike,
    expected_signer: str,
) -> VerificationResult:
    """Check that ``signature`` over ``message`` was made by ``expected_signer``.

    Only EOA signatures can be checked locally; contract wallets
    (EIP-1271) must be verified on-chain.

    Returns:
        VALID, INVALID_SIGNATURE or MALFORMED_SIGNATURE. Never raises for
        a bad signature.

    Raises:
        SchemaMismatch: If the message itself does not match the schema
    """
    # Encode first so schema problems surface as errors, not as bad signatures
    signable = encode_signable(domain, schema, primary_type, message)

    try:
        parsed = _as_signature(signature)
    except (ValueError, TypeError) as exc:
        logger.debug("Unparsable %s signature: %s", primary_type, exc)
        return VerificationResult.MALFORMED_SIGNATURE
    if (
        not 0 < parsed.r < _SECP256K1_N
        or not 0 < parsed.s <= _SECP256K1_HALF_N
        or parsed.v not in (27, 28)
    ):
        return VerificationResult.MALFORMED_SIGNATURE

    try:
        recovered = Account.recover_message(signable, vrs=(parsed.v, parsed.r, parsed.s))
    except Exception as exc:
        logger.debug("Could not recover %s signer: %s", primary_type, exc)
        return VerificationResult.MALFORMED_SIGNATURE

    if recovered == ZERO_ADDRESS:
        return VerificationResult.MALFORMED_SIGNATURE
    if not is_address(expected_signer) or recovered != to_checksum_address(expected_signer):
        return VerificationResult.INVALID_SIGNATURE
    return VerificationResult.VALID


def verify_typed_data(
    domain: Domain,
    schema: TypeSchema,
    primary_type: str,
    message: Mapping[str, Any],
    signature: SignatureLike,
    expected_signer: str,
) -> bool:
    """Return True if the signature is valid and from ``expected_signer``."""
    result = check_signature(domain, schema, primary_type, message, signature, expected_signer)
    return result is VerificationResult.VALID
