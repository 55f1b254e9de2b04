"""EIP-712 domains and the Domain Registry.

Two kinds of domain exist in the protocol: the exchange domain, which
scopes Order signatures to the pDEX contract, and one token domain per
token contract, which scopes Permit signatures. They must never be
interchanged.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from eth_utils import is_address, to_checksum_address

from ..errors import UnknownDomain
from .encoding import hash_struct
from .schema import TypeSchema

# Default exchange domain name
ORDER_DOMAIN_NAME = "pDEX"

# Domain version bound to the default (shared) nonce scheme
ORDER_DOMAIN_VERSION = "1"

EIP712_DOMAIN_FIELDS = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

DOMAIN_SCHEMA = TypeSchema(
    {"EIP712Domain": [(field["name"], field["type"]) for field in EIP712_DOMAIN_FIELDS]}
)


@dataclass(frozen=True)
class Domain:
    """EIP-712 domain separator inputs."""

    name: str
    version: str
    chain_id: int
    verifying_contract: str

    def __post_init__(self) -> None:
        if not is_address(self.verifying_contract):
            raise ValueError(f"Invalid verifying contract address: {self.verifying_contract}")
        if isinstance(self.chain_id, bool) or not isinstance(self.chain_id, int) or self.chain_id <= 0:
            raise ValueError(f"Invalid chain id: {self.chain_id!r}")
        object.__setattr__(self, "verifying_contract", to_checksum_address(self.verifying_contract))

    def to_message(self) -> Dict[str, Any]:
        """Return the domain in EIP-712 JSON form."""
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": self.verifying_contract,
        }

    def separator(self) -> bytes:
        """Return the 32-byte domain separator."""
        return hash_struct(DOMAIN_SCHEMA, "EIP712Domain", self.to_message())


def create_order_domain(
    exchange_address: str,
    chain_id: int,
    name: str = ORDER_DOMAIN_NAME,
    version: str = ORDER_DOMAIN_VERSION,
) -> Domain:
    """Create the exchange domain that scopes Order signatures.

    Raises:
        ValueError: If the exchange address or chain id is invalid
    """
    return Domain(name=name, version=version, chain_id=chain_id, verifying_contract=exchange_address)


def create_permit_domain(
    token_address: str,
    token_name: str,
    chain_id: int,
    version: str = "1",
) -> Domain:
    """Create a token domain that scopes Permit signatures.

    ``token_name`` must be the token's ERC-20 ``name()``; EIP-2612 tokens
    build their domain separator from it.
    """
    return Domain(name=token_name, version=version, chain_id=chain_id, verifying_contract=token_address)


class DomainRegistry:
    """Holds the exchange domain and the token domains for one deployment."""

    def __init__(self, order_domain: Domain, permit_domains: Optional[List[Domain]] = None):
        self._order_domain = order_domain
        self._permit_domains: Dict[str, Domain] = {}
        for domain in permit_domains or []:
            self.register_permit_domain(domain)

    @property
    def order_domain(self) -> Domain:
        return self._order_domain

    @property
    def chain_id(self) -> int:
        return self._order_domain.chain_id

    def register_permit_domain(self, domain: Domain) -> None:
        """Register the Permit domain of a token contract.

        Raises:
            ValueError: If the domain points at the exchange contract or
                lives on a different chain
        """
        if domain.verifying_contract == self._order_domain.verifying_contract:
            raise ValueError("Permit domain must not share the exchange verifying contract")
        if domain.chain_id != self._order_domain.chain_id:
            raise ValueError(
                f"Permit domain chain id {domain.chain_id} does not match "
                f"exchange chain id {self._order_domain.chain_id}"
            )
        self._permit_domains[domain.verifying_contract] = domain

    def permit_domain(self, token_address: str) -> Domain:
        """Return the Permit domain registered for ``token_address``.

        Raises:
            UnknownDomain: If no domain is registered for the token
        """
        key = to_checksum_address(token_address) if is_address(token_address) else token_address
        try:
            return self._permit_domains[key]
        except KeyError:
            raise UnknownDomain(f"No permit domain registered for token {token_address}") from None

    def tokens(self) -> List[str]:
        return list(self._permit_domains)
