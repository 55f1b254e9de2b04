"""pDEX Order Module.

This module provides seller-side order construction for the pDEX exchange.

Key components:
- Order, Permit and Rule types with their EIP-712 schemas
- Permit creation, signing and freshness checks (EIP-2612)
- Order assembly and two-round signing into a relayable payload
- Verifier attestations over buyer and order packages

Example usage:
    ```python
    from pdex_sdk.orders import OrderAssembler, Rule, RuleType

    assembler = OrderAssembler(domains, nonce_source)
    payload = assembler.build_payload(
        {
            "seller": signer.address,
            "for_sale_token_address": TOKEN_ADDRESS,
            "payment_token_address": USD_ADDRESS,
            "min_volume": 100,
            "max_volume": 500000,
            "price_per_token": 20000,
        },
        rules=[Rule.text(RuleType.OFFCHAIN_VERIFIER, "Location", "Houston, TX")],
        signer=signer,
    )
    order, rules, permit, order_sig, v, r, s = payload.execute_args()
    ```
"""

from .types import (
    RuleType,
    Rule,
    Permit,
    Order,
    OrderTerms,
    OrderPayload,
    RULE_TYPES,
    PERMIT_TYPES,
    ORDER_TYPES,
    PERMIT_SCHEMA,
    ORDER_SCHEMA,
)
from .order_id import compute_order_id, verify_order_id
from .permit import (
    MIN_DEADLINE_SECONDS,
    MAX_DEADLINE_SECONDS,
    NonceSource,
    PermitState,
    create_permit,
    fetch_nonce,
    sign_permit,
    verify_permit,
    permit_state,
    is_permit_live,
)
from .assembler import OrderAssembler
from .verification import (
    EntityType,
    Accreditation,
    BuyerData,
    Verification,
    VERIFICATION_TYPES,
    VERIFICATION_SCHEMA,
    buyer_package_hash,
    seller_package_hash,
    create_verification,
    sign_verification,
    verify_verification,
    verification_covers,
)
from .utils import (
    ANVIL_CHAIN_ID,
    DEFAULT_DECIMALS,
    ZERO_ADDRESS,
    format_token_amount,
    parse_token_amount,
    calculate_payment_amount,
)

__all__ = [
    # Types
    "RuleType",
    "Rule",
    "Permit",
    "Order",
    "OrderTerms",
    "OrderPayload",
    "RULE_TYPES",
    "PERMIT_TYPES",
    "ORDER_TYPES",
    "PERMIT_SCHEMA",
    "ORDER_SCHEMA",
    # Order ID
    "compute_order_id",
    "verify_order_id",
    # Permits
    "MIN_DEADLINE_SECONDS",
    "MAX_DEADLINE_SECONDS",
    "NonceSource",
    "PermitState",
    "create_permit",
    "fetch_nonce",
    "sign_permit",
    "verify_permit",
    "permit_state",
    "is_permit_live",
    # Assembly
    "OrderAssembler",
    # Verification
    "EntityType",
    "Accreditation",
    "BuyerData",
    "Verification",
    "VERIFICATION_TYPES",
    "VERIFICATION_SCHEMA",
    "buyer_package_hash",
    "seller_package_hash",
    "create_verification",
    "sign_verification",
    "verify_verification",
    "verification_covers",
    # Utils
    "ANVIL_CHAIN_ID",
    "DEFAULT_DECIMALS",
    "ZERO_ADDRESS",
    "format_token_amount",
    "parse_token_amount",
    "calculate_payment_amount",
]
