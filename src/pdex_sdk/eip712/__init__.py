"""EIP-712 typed structured data.

Key components:
- Type schemas (ordered struct declarations)
- Struct encoding and hashing
- Domains and the domain registry
- Signing, recovery and verification
"""

from .schema import Field, TypeSchema, is_atomic, parse_array
from .encoding import encode_data, encode_value, hash_struct, type_hash
from .domain import (
    DOMAIN_SCHEMA,
    ORDER_DOMAIN_NAME,
    ORDER_DOMAIN_VERSION,
    Domain,
    DomainRegistry,
    create_order_domain,
    create_permit_domain,
)
from .signing import (
    ZERO_ADDRESS,
    LocalSigner,
    MessageSigner,
    Signature,
    TypedDataSigner,
    VerificationResult,
    check_signature,
    encode_signable,
    recover_signer,
    sign_typed_data,
    sign_typed_data_with_signer,
    to_typed_data,
    typed_data_digest,
    verify_typed_data,
)

__all__ = [
    # Schema
    "Field",
    "TypeSchema",
    "is_atomic",
    "parse_array",
    # Encoding
    "encode_data",
    "encode_value",
    "hash_struct",
    "type_hash",
    # Domains
    "DOMAIN_SCHEMA",
    "ORDER_DOMAIN_NAME",
    "ORDER_DOMAIN_VERSION",
    "Domain",
    "DomainRegistry",
    "create_order_domain",
    "create_permit_domain",
    # Signing
    "ZERO_ADDRESS",
    "LocalSigner",
    "MessageSigner",
    "Signature",
    "TypedDataSigner",
    "VerificationResult",
    "check_signature",
    "encode_signable",
    "recover_signer",
    "sign_typed_data",
    "sign_typed_data_with_signer",
    "to_typed_data",
    "typed_data_digest",
    "verify_typed_data",
]
