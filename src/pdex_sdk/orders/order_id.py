"""Order ID Generation for pDEX orders.

The order ID is the EIP-712 digest of the order under the exchange domain,
the same value the settlement contract recovers the seller's signature
against. It therefore provides:
- Cross-chain and cross-deployment separation (via the domain)
- Cross-seller collision prevention (via the seller field)
- Replay detection (via the order nonce)
"""

from ..eip712 import Domain, typed_data_digest
from .types import ORDER_SCHEMA, Order


def compute_order_id(order: Order, order_domain: Domain) -> str:
    """Compute the order ID.

    Args:
        order: Order to identify
        order_domain: Exchange domain the order is signed under

    Returns:
        bytes32 hex string order ID
    """
    return "0x" + typed_data_digest(order_domain, ORDER_SCHEMA, "Order", order.to_message()).hex()


def verify_order_id(order_id: str, order: Order, order_domain: Domain) -> bool:
    """Verify an order ID matches the given order.

    Args:
        order_id: The order ID to verify
        order: Order to check against
        order_domain: Exchange domain

    Returns:
        True if the order ID matches, False otherwise
    """
    return compute_order_id(order, order_domain).lower() == order_id.lower()
