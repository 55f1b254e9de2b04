"""Order Types for the pDEX order protocol.

User-facing types for order and permit signing, plus the EIP-712 wire
schemas. Any field addition, removal or reorder in these schemas is a
breaking protocol change and needs a new exchange domain version.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Tuple, TypedDict, Union

from eth_utils import is_address, to_checksum_address

from ..eip712 import Signature, TypeSchema


class RuleType(IntEnum):
    """Who enforces a seller rule."""

    CONTRACT_ENFORCEABLE = 0
    OFFCHAIN_VERIFIER = 1


def _checksum(label: str, address: str) -> str:
    if not isinstance(address, str) or not is_address(address):
        raise ValueError(f"Invalid {label} address: {address}")
    return to_checksum_address(address)


def _uint(label: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Invalid {label}: {value!r}. Must be an integer")
    if value < 0 or value >= 2**256:
        raise ValueError(f"Invalid {label}: {value}. Must fit in uint256")
    return value


@dataclass(frozen=True)
class Rule:
    """A seller-attached condition on the sale."""

    rule_type: RuleType
    """Whether the contract or the off-chain verifier enforces the rule."""

    key: str
    """Rule name (e.g., "Location")."""

    value: bytes
    """Opaque rule value (e.g., b"Houston, TX")."""

    def __post_init__(self) -> None:
        object.__setattr__(self, "rule_type", RuleType(self.rule_type))
        if not isinstance(self.key, str):
            raise ValueError(f"Invalid rule key: {self.key!r}")
        if isinstance(self.value, bytearray):
            object.__setattr__(self, "value", bytes(self.value))
        if not isinstance(self.value, bytes):
            raise ValueError(f"Invalid rule value: {self.value!r}. Must be bytes")

    @classmethod
    def text(cls, rule_type: Union[RuleType, int], key: str, value: str) -> "Rule":
        """Create a rule whose value is UTF-8 text."""
        return cls(rule_type=RuleType(rule_type), key=key, value=value.encode("utf-8"))

    def to_message(self) -> Dict[str, Any]:
        return {"ruleType": int(self.rule_type), "key": self.key, "value": self.value}

    @classmethod
    def from_message(cls, message: Mapping[str, Any]) -> "Rule":
        value = message["value"]
        if isinstance(value, str):
            value = bytes.fromhex(value[2:] if value.startswith("0x") else value)
        return cls(rule_type=RuleType(int(message["ruleType"])), key=message["key"], value=value)


@dataclass(frozen=True)
class Permit:
    """EIP-2612 permit letting ``spender`` move up to ``value`` of ``owner``'s token."""

    owner: str
    """Token holder granting the allowance."""

    spender: str
    """Address allowed to spend (the pDEX exchange contract)."""

    value: int
    """Maximum token amount, in the token's smallest unit."""

    nonce: int
    """Owner's current nonce on the token contract at signing time."""

    deadline: int
    """Unix timestamp (seconds) after which the permit is unusable."""

    def __post_init__(self) -> None:
        object.__setattr__(self, "owner", _checksum("owner", self.owner))
        object.__setattr__(self, "spender", _checksum("spender", self.spender))
        _uint("permit value", self.value)
        _uint("permit nonce", self.nonce)
        _uint("permit deadline", self.deadline)

    def to_message(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "spender": self.spender,
            "value": self.value,
            "nonce": self.nonce,
            "deadline": self.deadline,
        }

    @classmethod
    def from_message(cls, message: Mapping[str, Any]) -> "Permit":
        return cls(
            owner=message["owner"],
            spender=message["spender"],
            value=int(message["value"]),
            nonce=int(message["nonce"]),
            deadline=int(message["deadline"]),
        )


@dataclass(frozen=True)
class Order:
    """Sell-side intent signed by the seller."""

    seller: str
    for_sale_token_address: str
    """Permissioned security token being sold."""

    payment_token_address: str
    """ERC-20 token the buyer pays with."""

    min_volume: int
    max_volume: int
    price_per_token: int
    """Price in the payment token's smallest unit."""

    expiry: int
    """Unix timestamp (seconds) after which the order is unusable."""

    nonce: int
    """Exchange-level replay protection."""

    permit: Permit
    """Permit drawn on by the settlement layer, embedded verbatim."""

    rules: Tuple[Rule, ...] = field(default_factory=tuple)
    """Seller rules. Order is part of the signed content."""

    def __post_init__(self) -> None:
        object.__setattr__(self, "seller", _checksum("seller", self.seller))
        object.__setattr__(
            self, "for_sale_token_address", _checksum("for-sale token", self.for_sale_token_address)
        )
        object.__setattr__(
            self, "payment_token_address", _checksum("payment token", self.payment_token_address)
        )
        for label in ("min_volume", "max_volume", "price_per_token", "expiry", "nonce"):
            _uint(label, getattr(self, label))
        if self.min_volume > self.max_volume:
            raise ValueError(
                f"Invalid volume range: min_volume {self.min_volume} > max_volume {self.max_volume}"
            )
        if not isinstance(self.permit, Permit):
            raise ValueError(f"Invalid permit: {self.permit!r}")
        rules = tuple(self.rules)
        if not all(isinstance(rule, Rule) for rule in rules):
            raise ValueError("Every rule must be a Rule instance")
        object.__setattr__(self, "rules", rules)

    def core_message(self) -> Dict[str, Any]:
        """Return the scalar Order fields, without rules and permit."""
        return {
            "seller": self.seller,
            "forSaleTokenAddress": self.for_sale_token_address,
            "paymentTokenAddress": self.payment_token_address,
            "minVolume": self.min_volume,
            "maxVolume": self.max_volume,
            "pricePerToken": self.price_per_token,
            "expiry": self.expiry,
            "nonce": self.nonce,
        }

    def to_message(self) -> Dict[str, Any]:
        """Return the full EIP-712 ``Order`` message."""
        return {
            **self.core_message(),
            "rules": [rule.to_message() for rule in self.rules],
            "permit": self.permit.to_message(),
        }

    @classmethod
    def from_message(cls, message: Mapping[str, Any]) -> "Order":
        return cls(
            seller=message["seller"],
            for_sale_token_address=message["forSaleTokenAddress"],
            payment_token_address=message["paymentTokenAddress"],
            min_volume=int(message["minVolume"]),
            max_volume=int(message["maxVolume"]),
            price_per_token=int(message["pricePerToken"]),
            expiry=int(message["expiry"]),
            nonce=int(message["nonce"]),
            rules=tuple(Rule.from_message(rule) for rule in message["rules"]),
            permit=Permit.from_message(message["permit"]),
        )


class OrderTerms(TypedDict, total=False):
    """Order fields supplied by the seller before assembly."""

    seller: str
    for_sale_token_address: str
    payment_token_address: str
    min_volume: int
    max_volume: int
    price_per_token: int

    expiry: int
    """Unix timestamp. Default: now + configured order expiry"""

    nonce: int
    """Order nonce. Default: taken from the configured nonce scheme"""


@dataclass(frozen=True)
class OrderPayload:
    """Signed order bundle handed to the settlement layer."""

    order: Order
    order_signature: Signature
    """Seller's signature over the Order under the exchange domain."""

    permit_signature: Signature
    """Seller's signature over the Permit under the token domain."""

    @property
    def permit(self) -> Permit:
        """Redundant copy of the embedded permit, needed by the executor."""
        return self.order.permit

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return self.order.rules

    def execute_args(self) -> Tuple[Dict[str, Any], List[Dict[str, Any]], Dict[str, Any], bytes, int, str, str]:
        """Return ``(order, rules, permit, orderSignature, v, r, s)`` for ``executeTrade``."""
        v, r, s = self.permit_signature.vrs()
        return (
            self.order.core_message(),
            [rule.to_message() for rule in self.rules],
            self.permit.to_message(),
            self.order_signature.to_bytes(),
            v,
            r,
            s,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable wire form.

        uint256 values are rendered as decimal strings and bytes as hex.
        """
        v, r, s = self.permit_signature.vrs()
        return {
            "order": {
                key: str(value) if isinstance(value, int) else value
                for key, value in self.order.core_message().items()
            },
            "rules": [
                {"ruleType": int(rule.rule_type), "key": rule.key, "value": "0x" + rule.value.hex()}
                for rule in self.rules
            ],
            "permit": {
                key: str(value) if isinstance(value, int) else value
                for key, value in self.permit.to_message().items()
            },
            "orderSignature": self.order_signature.hex(),
            "permitSignature": {"v": v, "r": r, "s": s},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OrderPayload":
        """Parse the wire form produced by :meth:`to_dict`."""
        permit_sig = data["permitSignature"]
        return cls(
            order=Order.from_message(
                {**data["order"], "rules": data["rules"], "permit": data["permit"]}
            ),
            order_signature=Signature.from_hex(data["orderSignature"]),
            permit_signature=Signature(
                v=int(permit_sig["v"]), r=int(permit_sig["r"], 16), s=int(permit_sig["s"], 16)
            ),
        )


# EIP-712 types for seller rules
RULE_TYPES = {
    "Rule": [
        {"name": "ruleType", "type": "uint8"},
        {"name": "key", "type": "string"},
        {"name": "value", "type": "bytes"},
    ],
}

# EIP-712 types for EIP-2612 permits
PERMIT_TYPES = {
    "Permit": [
        {"name": "owner", "type": "address"},
        {"name": "spender", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
}

# EIP-712 types for orders (Order embeds Rule[] and Permit)
ORDER_TYPES = {
    "Order": [
        {"name": "seller", "type": "address"},
        {"name": "forSaleTokenAddress", "type": "address"},
        {"name": "paymentTokenAddress", "type": "address"},
        {"name": "minVolume", "type": "uint256"},
        {"name": "maxVolume", "type": "uint256"},
        {"name": "pricePerToken", "type": "uint256"},
        {"name": "expiry", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "rules", "type": "Rule[]"},
        {"name": "permit", "type": "Permit"},
    ],
    **RULE_TYPES,
    **PERMIT_TYPES,
}

PERMIT_SCHEMA = TypeSchema.from_eip712(PERMIT_TYPES)
ORDER_SCHEMA = TypeSchema.from_eip712(ORDER_TYPES)
