"""pDEX SDK.

Off-chain order protocol for the pDEX permissioned-security-token exchange:
EIP-712 typed-data signing, EIP-2612 permits, and order payload assembly.
"""

from .errors import (
    OrderProtocolError,
    SchemaMismatch,
    UnknownType,
    UnknownDomain,
    KeyUnavailable,
    PayloadSelfCheckFailed,
)
from .config import (
    NonceScheme,
    OrderProtocolConfig,
    ResolvedOrderProtocolConfig,
    resolve_config,
    load_config_from_env,
)
from .eip712 import (
    Domain,
    DomainRegistry,
    LocalSigner,
    Signature,
    TypeSchema,
    TypedDataSigner,
    VerificationResult,
    create_order_domain,
    create_permit_domain,
    hash_struct,
    sign_typed_data,
    verify_typed_data,
)
from .orders import (
    Order,
    OrderAssembler,
    OrderPayload,
    Permit,
    Rule,
    RuleType,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Errors
    "OrderProtocolError",
    "SchemaMismatch",
    "UnknownType",
    "UnknownDomain",
    "KeyUnavailable",
    "PayloadSelfCheckFailed",
    # Config
    "NonceScheme",
    "OrderProtocolConfig",
    "ResolvedOrderProtocolConfig",
    "resolve_config",
    "load_config_from_env",
    # EIP-712
    "Domain",
    "DomainRegistry",
    "LocalSigner",
    "Signature",
    "TypeSchema",
    "TypedDataSigner",
    "VerificationResult",
    "create_order_domain",
    "create_permit_domain",
    "hash_struct",
    "sign_typed_data",
    "verify_typed_data",
    # Orders
    "Order",
    "OrderAssembler",
    "OrderPayload",
    "Permit",
    "Rule",
    "RuleType",
]
