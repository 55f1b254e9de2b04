"""Verifier attestations.

A verifying entity (broker-dealer or ATS) confirms that a buyer meets the
seller's off-chain rules and signs a ``Verification`` under the exchange
domain. Buyer personal data is never inlined: the attestation commits to
the struct hash of ``Buyer_Data`` and to the struct hash of the Order.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

from eth_utils import to_checksum_address

from ..eip712 import Domain, MessageSigner, Signature, TypeSchema, hash_struct, sign_typed_data, verify_typed_data
from .types import ORDER_SCHEMA, Order


class EntityType(IntEnum):
    BROKER_DEALER = 0
    ALTERNATIVE_TRADING_SYSTEM = 1


class Accreditation(IntEnum):
    ACCREDITED_INVESTOR = 0
    QUALIFIED_PURCHASER = 1
    INSTITUTIONAL = 2


@dataclass(frozen=True)
class BuyerData:
    """Buyer identity package reviewed by the verifier."""

    first_name: str
    last_name: str
    date_of_birth: str
    """ISO 8601 date (e.g., "1980-01-31")."""

    residential_address: str
    accreditation: Accreditation

    def to_message(self) -> Dict[str, Any]:
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "dateOfBirth": self.date_of_birth,
            "residentialAddress": self.residential_address,
            "accreditation": int(self.accreditation),
        }


@dataclass(frozen=True)
class Verification:
    """Verifier's signed statement about a buyer and an order."""

    entity_type: EntityType
    confirm_rules_met: bool
    verification_entity_address: str
    seller_package_hash: bytes
    """Struct hash of the Order being filled."""

    buyer_package_hash: bytes
    """Struct hash of the buyer's ``Buyer_Data``."""

    verifiers_finra_id: str
    """FINRA CRD number of the verifying entity."""

    def to_message(self) -> Dict[str, Any]:
        return {
            "entityType": int(self.entity_type),
            "confirmRulesMet": self.confirm_rules_met,
            "verificationEntityAddress": self.verification_entity_address,
            "sellerPackageHash": self.seller_package_hash,
            "buyerPackageHash": self.buyer_package_hash,
            "verifiersFINRAID": self.verifiers_finra_id,
        }


# EIP-712 types for verifier attestations
VERIFICATION_TYPES = {
    "Verification": [
        {"name": "entityType", "type": "uint8"},
        {"name": "confirmRulesMet", "type": "bool"},
        {"name": "verificationEntityAddress", "type": "address"},
        {"name": "sellerPackageHash", "type": "bytes"},
        {"name": "buyerPackageHash", "type": "bytes"},
        {"name": "verifiersFINRAID", "type": "string"},
    ],
    "Buyer_Data": [
        {"name": "firstName", "type": "string"},
        {"name": "lastName", "type": "string"},
        {"name": "dateOfBirth", "type": "string"},
        {"name": "residentialAddress", "type": "string"},
        {"name": "accreditation", "type": "uint8"},
    ],
}

VERIFICATION_SCHEMA = TypeSchema.from_eip712(VERIFICATION_TYPES)


def buyer_package_hash(buyer: BuyerData) -> bytes:
    return hash_struct(VERIFICATION_SCHEMA, "Buyer_Data", buyer.to_message())


def seller_package_hash(order: Order) -> bytes:
    return hash_struct(ORDER_SCHEMA, "Order", order.to_message())


def create_verification(
    order: Order,
    buyer: BuyerData,
    verifier_address: str,
    entity_type: EntityType,
    finra_id: str,
    rules_met: bool = True,
) -> Verification:
    """Create a verification committing to ``order`` and ``buyer``.

    Raises:
        ValueError: If the verifier address is invalid
    """
    return Verification(
        entity_type=EntityType(entity_type),
        confirm_rules_met=rules_met,
        verification_entity_address=to_checksum_address(verifier_address),
        seller_package_hash=seller_package_hash(order),
        buyer_package_hash=buyer_package_hash(buyer),
        verifiers_finra_id=finra_id,
    )


def sign_verification(
    verification: Verification, order_domain: Domain, signer: MessageSigner
) -> Signature:
    """Sign a verification under the exchange domain.

    Raises:
        ValueError: If the signer is not the verification entity
    """
    if to_checksum_address(signer.address) != verification.verification_entity_address:
        raise ValueError(
            f"Signer {signer.address} is not the verification entity "
            f"{verification.verification_entity_address}"
        )
    return sign_typed_data(
        order_domain, VERIFICATION_SCHEMA, "Verification", verification.to_message(), signer
    )


def verify_verification(
    verification: Verification,
    signature: Signature,
    order_domain: Domain,
    expected_verifier: Optional[str] = None,
) -> bool:
    """Return True if the verification was signed by the expected verifier."""
    return verify_typed_data(
        order_domain,
        VERIFICATION_SCHEMA,
        "Verification",
        verification.to_message(),
        signature,
        expected_verifier or verification.verification_entity_address,
    )


def verification_covers(verification: Verification, order: Order, buyer: BuyerData) -> bool:
    """Return True if the verification commits to exactly this order and buyer."""
    return (
        verification.seller_package_hash == seller_package_hash(order)
        and verification.buyer_package_hash == buyer_package_hash(buyer)
    )
