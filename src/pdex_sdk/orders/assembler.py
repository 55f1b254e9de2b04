"""Order Assembler.

Builds the signed payload a seller hands to a verifier for relaying:

1. Read the seller's current token nonce (snapshot)
2. Create and sign a Permit under the token's domain
3. Assemble the Order embedding that exact Permit and the seller's rules
4. Sign the Order under the exchange domain
5. Verify both signatures locally before releasing the payload

A payload that passes the local self-check can still be rejected on-chain
(stale nonce, expired permit or order, insufficient balance); only the
settlement contract can tell.
"""

import logging
import time
from typing import Optional, Sequence

from eth_utils import to_checksum_address

from ..config import NonceScheme, OrderProtocolConfig, ResolvedOrderProtocolConfig, resolve_config
from ..eip712 import (
    DomainRegistry,
    MessageSigner,
    Signature,
    TypedDataSigner,
    VerificationResult,
    check_signature,
    sign_typed_data,
    sign_typed_data_with_signer,
)
from ..errors import PayloadSelfCheckFailed
from .order_id import compute_order_id
from .permit import NonceSource, check_permit_signature, create_permit, fetch_nonce, sign_permit
from .types import ORDER_SCHEMA, PERMIT_SCHEMA, Order, OrderPayload, OrderTerms, Permit, Rule

logger = logging.getLogger(__name__)

_REQUIRED_TERMS = (
    "seller",
    "for_sale_token_address",
    "payment_token_address",
    "min_volume",
    "max_volume",
    "price_per_token",
)


class OrderAssembler:
    """Assembles and signs pDEX order payloads.

    Example:
        ```python
        domains = DomainRegistry(create_order_domain(PDEX_ADDRESS, 31337))
        domains.register_permit_domain(
            create_permit_domain(TOKEN_ADDRESS, "Permissioned Security Token", 31337)
        )
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
            permit_value=5000,
        )
        ```
    """

    def __init__(
        self,
        domains: DomainRegistry,
        nonce_source: NonceSource,
        config: Optional[OrderProtocolConfig] = None,
    ):
        """Initialize the assembler.

        Args:
            domains: Exchange domain plus one permit domain per token
            nonce_source: Reader for on-chain nonces
            config: Optional configuration; exchange address and chain id
                default to the registry's exchange domain. The exchange
                domain version must match the nonce scheme's version

        Raises:
            ValueError: If the config disagrees with the exchange domain
        """
        order_domain = domains.order_domain
        config = {
            "exchange_address": order_domain.verifying_contract,
            "chain_id": order_domain.chain_id,
            "exchange_name": order_domain.name,
            **(config or {}),
        }
        self._config = resolve_config(config)  # type: ignore[arg-type]
        if (
            self._config.exchange_address != order_domain.verifying_contract
            or self._config.chain_id != order_domain.chain_id
        ):
            raise ValueError("Config exchange_address/chain_id do not match the exchange domain")
        if self._config.exchange_version != order_domain.version:
            raise ValueError(
                f"Exchange domain version {order_domain.version!r} does not match "
                f"configured version {self._config.exchange_version!r}"
            )
        self._domains = domains
        self._nonce_source = nonce_source

    @property
    def domains(self) -> DomainRegistry:
        return self._domains

    def get_config(self) -> ResolvedOrderProtocolConfig:
        """Get the resolved configuration."""
        return self._config

    def create_permit(
        self,
        owner: str,
        token_address: str,
        value: int,
        deadline_seconds: Optional[int] = None,
        now: Optional[int] = None,
    ) -> Permit:
        """Create a permit for the exchange, bound to the owner's current nonce.

        The nonce is read immediately before the permit is built. A
        concurrent permit for the same owner and token can still race it;
        the later one wins on-chain.

        Raises:
            UnknownDomain: If no permit domain is registered for the token
        """
        self._domains.permit_domain(token_address)
        nonce = fetch_nonce(self._nonce_source, owner, token_address)
        return create_permit(
            owner=owner,
            spender=self._config.exchange_address,
            value=value,
            nonce=nonce,
            deadline_seconds=(
                self._config.permit_deadline_seconds
                if deadline_seconds is None
                else deadline_seconds
            ),
            now=now,
        )

    def assemble(
        self,
        terms: OrderTerms,
        rules: Sequence[Rule],
        permit: Permit,
        now: Optional[int] = None,
    ) -> Order:
        """Assemble an unsigned Order embedding ``permit`` and ``rules``.

        Args:
            terms: Seller's order fields
            rules: Seller rules, in the order they will be signed
            permit: Permit the settlement layer will draw on
            now: Current unix time, used for the default expiry

        Returns:
            Unsigned Order

        Raises:
            ValueError: If a term is missing, the permit does not belong to
                the seller and exchange, the permit value cannot cover the
                minimum volume, or the nonce breaks the nonce scheme
        """
        missing = [key for key in _REQUIRED_TERMS if key not in terms]
        if missing:
            raise ValueError(f"Missing order terms: {', '.join(missing)}")
        self._domains.permit_domain(terms["for_sale_token_address"])

        nonce = self._order_nonce(terms, permit)
        if "expiry" in terms:
            expiry = terms["expiry"]
        else:
            now = int(time.time()) if now is None else now
            expiry = now + self._config.order_expiry_seconds

        # Order construction validates every term before the permit is compared
        order = Order(
            seller=terms["seller"],
            for_sale_token_address=terms["for_sale_token_address"],
            payment_token_address=terms["payment_token_address"],
            min_volume=terms["min_volume"],
            max_volume=terms["max_volume"],
            price_per_token=terms["price_per_token"],
            expiry=expiry,
            nonce=nonce,
            rules=tuple(rules),
            permit=permit,
        )

        if permit.owner != order.seller:
            raise ValueError(f"Permit owner {permit.owner} is not the seller {order.seller}")
        if permit.spender != self._config.exchange_address:
            raise ValueError(
                f"Permit spender {permit.spender} is not the exchange {self._config.exchange_address}"
            )
        if permit.value < order.min_volume:
            raise ValueError(
                f"Permit value {permit.value} is below the minimum volume {order.min_volume}"
            )
        return order

    def _order_nonce(self, terms: OrderTerms, permit: Permit) -> int:
        if self._config.nonce_scheme is NonceScheme.SHARED:
            nonce = terms.get("nonce", permit.nonce)
            if nonce != permit.nonce:
                raise ValueError(
                    f"Order nonce {nonce} must equal permit nonce {permit.nonce} "
                    "under the shared nonce scheme"
                )
            return nonce
        if "nonce" in terms:
            return terms["nonce"]
        return fetch_nonce(self._nonce_source, terms["seller"], self._config.exchange_address)

    def sign(self, order: Order, signer: MessageSigner) -> OrderPayload:
        """Sign the permit and the order, then self-check the payload.

        Raises:
            ValueError: If the signer is not the seller
            PayloadSelfCheckFailed: If either signature fails to verify
        """
        if to_checksum_address(signer.address) != order.seller:
            raise ValueError(f"Signer {signer.address} is not the seller {order.seller}")

        permit_domain = self._domains.permit_domain(order.for_sale_token_address)
        permit_signature = sign_permit(order.permit, permit_domain, signer)
        order_signature = sign_typed_data(
            self._domains.order_domain, ORDER_SCHEMA, "Order", order.to_message(), signer
        )
        return self._ready(order, order_signature, permit_signature)

    async def sign_async(self, order: Order, signer: TypedDataSigner) -> OrderPayload:
        """Sign with a remote wallet (Privy, MetaMask, etc.).

        Raises:
            ValueError: If the signer is not the seller
            PayloadSelfCheckFailed: If either signature fails to verify
        """
        signer_address = to_checksum_address(await signer.get_address())
        if signer_address != order.seller:
            raise ValueError(f"Signer {signer_address} is not the seller {order.seller}")

        permit_signature = await sign_typed_data_with_signer(
            signer,
            self._domains.permit_domain(order.for_sale_token_address),
            PERMIT_SCHEMA,
            "Permit",
            order.permit.to_message(),
        )
        order_signature = await sign_typed_data_with_signer(
            signer, self._domains.order_domain, ORDER_SCHEMA, "Order", order.to_message()
        )
        return self._ready(order, order_signature, permit_signature)

    def build_payload(
        self,
        terms: OrderTerms,
        rules: Sequence[Rule],
        signer: MessageSigner,
        permit_value: Optional[int] = None,
        now: Optional[int] = None,
    ) -> OrderPayload:
        """Create the permit, assemble the order and sign both.

        ``permit_value`` defaults to the order's maximum volume.
        """
        permit = self.create_permit(
            owner=terms["seller"],
            token_address=terms["for_sale_token_address"],
            value=terms["max_volume"] if permit_value is None else permit_value,
            now=now,
        )
        order = self.assemble(terms, rules, permit, now=now)
        return self.sign(order, signer)

    def check_payload(self, payload: OrderPayload) -> VerificationResult:
        """Check both payload signatures against the seller.

        Returns the first non-VALID result, permit first.
        """
        order = payload.order
        permit_result = check_permit_signature(
            payload.permit,
            payload.permit_signature,
            self._domains.permit_domain(order.for_sale_token_address),
            order.seller,
        )
        if permit_result is not VerificationResult.VALID:
            return permit_result
        return check_signature(
            self._domains.order_domain,
            ORDER_SCHEMA,
            "Order",
            order.to_message(),
            payload.order_signature,
            order.seller,
        )

    def verify_payload(self, payload: OrderPayload) -> bool:
        """Return True if both signatures in ``payload`` are from its seller."""
        return self.check_payload(payload) is VerificationResult.VALID

    def _ready(
        self, order: Order, order_signature: Signature, permit_signature: Signature
    ) -> OrderPayload:
        payload = OrderPayload(
            order=order,
            order_signature=order_signature,
            permit_signature=permit_signature,
        )
        result = self.check_payload(payload)
        if result is not VerificationResult.VALID:
            raise PayloadSelfCheckFailed(f"Signed payload failed self-check: {result.value}")

        logger.info(
            "Order payload ready: id=%s seller=%s token=%s nonce=%d rules=%d",
            compute_order_id(order, self._domains.order_domain),
            order.seller,
            order.for_sale_token_address,
            order.nonce,
            len(order.rules),
        )
        return payload
