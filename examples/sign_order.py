"""Sign a pDEX sell order.

This example assembles and signs an order payload for a permissioned
security token listed on a local Anvil deployment of the pDEX exchange.
The seller signs:
- An EIP-2612 Permit under the token's domain
- The Order (with the Permit and rules embedded) under the exchange domain

The resulting payload is what a verifier relays to ``executeTrade``.

Prerequisites:
1. pip install pdex-sdk
2. Set environment variables:
   SELLER_PRIVATE_KEY, PDEX_EXCHANGE_ADDRESS, TOKEN_ADDRESS,
   TOKEN_NAME, PAYMENT_TOKEN_ADDRESS (optional: PDEX_CHAIN_ID)

Usage:
    python sign_order.py
"""

import json
import logging
import os

from dotenv import load_dotenv

load_dotenv()


class StaticNonces:
    """Nonce source for a fresh deployment where no permit has been used yet."""

    def get_nonce(self, owner, contract):
        return 0


def main():
    from pdex_sdk import LocalSigner, OrderAssembler, Rule, RuleType, load_config_from_env, resolve_config
    from pdex_sdk.eip712 import DomainRegistry, create_order_domain, create_permit_domain
    from pdex_sdk.orders import calculate_payment_amount, compute_order_id, format_token_amount

    logging.basicConfig(level=logging.INFO)

    required = [
        "SELLER_PRIVATE_KEY",
        "PDEX_EXCHANGE_ADDRESS",
        "TOKEN_ADDRESS",
        "TOKEN_NAME",
        "PAYMENT_TOKEN_ADDRESS",
    ]
    missing = [var for var in required if not os.environ.get(var)]
    if missing:
        print(f"Missing required environment variables: {', '.join(missing)}")
        return

    env_config = load_config_from_env()
    config = resolve_config(env_config)
    token_address = os.environ["TOKEN_ADDRESS"]

    print("=" * 60)
    print("  pDEX ORDER SIGNING")
    print("=" * 60)

    print("\n[1] Loading seller key...")
    signer = LocalSigner.from_env("SELLER_PRIVATE_KEY")
    print(f"    Seller: {signer.address}")

    print("\n[2] Registering domains...")
    domains = DomainRegistry(
        create_order_domain(
            config.exchange_address,
            config.chain_id,
            config.exchange_name,
            config.exchange_version,
        )
    )
    domains.register_permit_domain(
        create_permit_domain(token_address, os.environ["TOKEN_NAME"], config.chain_id)
    )
    print(f"    Exchange: {config.exchange_address} (chain {config.chain_id})")

    assembler = OrderAssembler(domains, StaticNonces(), env_config)

    volume = 5000
    price = 20000
    print("\n[3] Order preview:")
    print(f"    Volume: {format_token_amount(volume, 0)} tokens @ {price}")
    print(f"    Full fill pays: {calculate_payment_amount(volume, price)}")

    print("\n[4] Signing permit and order...")
    payload = assembler.build_payload(
        {
            "seller": signer.address,
            "for_sale_token_address": token_address,
            "payment_token_address": os.environ["PAYMENT_TOKEN_ADDRESS"],
            "min_volume": 100,
            "max_volume": volume,
            "price_per_token": price,
        },
        rules=[Rule.text(RuleType.OFFCHAIN_VERIFIER, "Location", "Houston, TX")],
        signer=signer,
    )

    print(f"    Order ID: {compute_order_id(payload.order, domains.order_domain)}")
    print("\n[5] Payload for the verifier:")
    print(json.dumps(payload.to_dict(), indent=2))


if __name__ == "__main__":
    main()
