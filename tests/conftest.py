"""Shared fixtures for the pDEX SDK tests."""

import pytest
from eth_account import Account

from pdex_sdk.eip712 import DomainRegistry, LocalSigner, create_order_domain, create_permit_domain
from pdex_sdk.orders import OrderAssembler

# Test wallet (DO NOT use in production)
TEST_PRIVATE_KEY = "0x" + "ab" * 32  # Deterministic test key
TEST_ACCOUNT = Account.from_key(TEST_PRIVATE_KEY)
TEST_ADDRESS = TEST_ACCOUNT.address

# Verifier wallet (DO NOT use in production)
VERIFIER_PRIVATE_KEY = "0x" + "cd" * 32
VERIFIER_ADDRESS = Account.from_key(VERIFIER_PRIVATE_KEY).address

CHAIN_ID = 31337
EXCHANGE_ADDRESS = "0x057ef64e23666f000b34ae31332854acbd1c8544"
TOKEN_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
PAYMENT_TOKEN_ADDRESS = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
TOKEN_NAME = "Permissioned Security Token"

NOW = 1_700_000_000


class FakeNonceLedger:
    """In-memory stand-in for on-chain ``nonces(owner)`` reads."""

    def __init__(self):
        self._nonces = {}
        self.reads = 0

    def get_nonce(self, owner: str, contract: str) -> int:
        self.reads += 1
        return self._nonces.get((owner.lower(), contract.lower()), 0)

    def set_nonce(self, owner: str, contract: str, nonce: int) -> None:
        self._nonces[(owner.lower(), contract.lower())] = nonce

    def consume(self, owner: str, contract: str) -> None:
        """Advance the nonce, as a successful ``permit`` call does."""
        key = (owner.lower(), contract.lower())
        self._nonces[key] = self._nonces.get(key, 0) + 1


@pytest.fixture
def signer():
    return LocalSigner(TEST_PRIVATE_KEY)


@pytest.fixture
def order_domain():
    return create_order_domain(EXCHANGE_ADDRESS, CHAIN_ID)


@pytest.fixture
def permit_domain():
    return create_permit_domain(TOKEN_ADDRESS, TOKEN_NAME, CHAIN_ID)


@pytest.fixture
def domains(order_domain, permit_domain):
    return DomainRegistry(order_domain, [permit_domain])


@pytest.fixture
def ledger():
    return FakeNonceLedger()


@pytest.fixture
def assembler(domains, ledger):
    return OrderAssembler(domains, ledger)


@pytest.fixture
def terms():
    return {
        "seller": TEST_ADDRESS,
        "for_sale_token_address": TOKEN_ADDRESS,
        "payment_token_address": PAYMENT_TOKEN_ADDRESS,
        "min_volume": 100,
        "max_volume": 500000,
        "price_per_token": 20000,
        "expiry": NOW + 3600,
    }
