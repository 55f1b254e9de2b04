"""Tests for order assembly and payload signing."""

import asyncio
import dataclasses
import logging

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data

from pdex_sdk import NonceScheme
from pdex_sdk.eip712 import (
    DomainRegistry,
    LocalSigner,
    Signature,
    VerificationResult,
    create_order_domain,
    sign_typed_data,
)
from pdex_sdk.errors import PayloadSelfCheckFailed, UnknownDomain
from pdex_sdk.orders import (
    ORDER_SCHEMA,
    OrderAssembler,
    OrderPayload,
    Rule,
    RuleType,
    compute_order_id,
    create_permit,
)

from conftest import (
    CHAIN_ID,
    EXCHANGE_ADDRESS,
    NOW,
    TEST_ADDRESS,
    TEST_PRIVATE_KEY,
    TOKEN_ADDRESS,
)

HOUSTON = Rule.text(RuleType.OFFCHAIN_VERIFIER, "Location", "Houston, TX")
MAX_HOLDERS = Rule.text(RuleType.CONTRACT_ENFORCEABLE, "MaxHolders", "2000")


class BrokenSigner:
    """Signer that returns a well-formed but wrong signature."""

    def __init__(self, address):
        self.address = address

    def sign_message(self, signable):
        return Signature(v=27, r=1, s=1)


class RemoteSigner:
    """Async wallet that signs the typed-data JSON it is handed."""

    def __init__(self, private_key):
        self._account = Account.from_key(private_key)
        self.requests = []

    async def get_address(self):
        return self._account.address

    async def sign_typed_data(self, params):
        self.requests.append(params)
        signed = self._account.sign_message(encode_typed_data(full_message=params))
        return "0x" + bytes(signed.signature).hex()


class TestAssemblerConfig:
    """Tests for assembler configuration."""

    def test_defaults_from_domain(self, assembler):
        """Test that config defaults come from the exchange domain."""
        config = assembler.get_config()

        assert config.chain_id == CHAIN_ID
        assert config.exchange_address.lower() == EXCHANGE_ADDRESS
        assert config.exchange_version == "1"
        assert config.nonce_scheme is NonceScheme.SHARED

    def test_address_mismatch(self, domains, ledger):
        """Test that a config for another exchange is rejected."""
        with pytest.raises(ValueError, match="do not match"):
            OrderAssembler(domains, ledger, {"exchange_address": "0x" + "11" * 20})

    def test_scheme_version_mismatch(self, domains, ledger):
        """Test that the domain version must follow the nonce scheme."""
        with pytest.raises(ValueError, match="does not match"):
            OrderAssembler(domains, ledger, {"nonce_scheme": "independent"})

    def test_explicit_version_against_scheme(self, domains, ledger):
        """Test that a version override cannot pair independent nonces with version 1."""
        with pytest.raises(ValueError, match="does not match nonce_scheme"):
            OrderAssembler(
                domains, ledger, {"nonce_scheme": "independent", "exchange_version": "1"}
            )


class TestPermitCreation:
    """Tests for OrderAssembler.create_permit."""

    def test_reads_current_nonce(self, assembler, ledger):
        """Test that the permit binds the owner's nonce at read time."""
        ledger.set_nonce(TEST_ADDRESS, TOKEN_ADDRESS, 7)

        permit = assembler.create_permit(TEST_ADDRESS, TOKEN_ADDRESS, 5000, now=NOW)

        assert permit.nonce == 7
        assert permit.spender.lower() == EXCHANGE_ADDRESS
        assert permit.deadline == NOW + 3600
        assert ledger.reads == 1

    def test_unknown_token(self, assembler):
        """Test that a token without a registered domain is rejected."""
        with pytest.raises(UnknownDomain):
            assembler.create_permit(TEST_ADDRESS, "0x" + "22" * 20, 5000)

    def test_custom_deadline(self, assembler):
        """Test overriding the configured permit deadline."""
        permit = assembler.create_permit(
            TEST_ADDRESS, TOKEN_ADDRESS, 5000, deadline_seconds=600, now=NOW
        )
        assert permit.deadline == NOW + 600

    def test_zero_deadline_rejected(self, assembler):
        """Test that an explicit zero deadline is rejected, not defaulted."""
        with pytest.raises(ValueError, match="Deadline too short"):
            assembler.create_permit(
                TEST_ADDRESS, TOKEN_ADDRESS, 5000, deadline_seconds=0, now=NOW
            )


class TestAssemble:
    """Tests for OrderAssembler.assemble."""

    def test_shared_nonce(self, assembler, terms):
        """Test that the order reuses the permit nonce by default."""
        permit = create_permit(TEST_ADDRESS, EXCHANGE_ADDRESS, 5000, nonce=4, now=NOW)

        order = assembler.assemble(terms, [HOUSTON], permit)

        assert order.nonce == 4
        assert order.permit is permit
        assert order.rules == (HOUSTON,)

    def test_shared_nonce_mismatch(self, assembler, terms):
        """Test that a differing order nonce is rejected under the shared scheme."""
        permit = create_permit(TEST_ADDRESS, EXCHANGE_ADDRESS, 5000, nonce=4, now=NOW)

        with pytest.raises(ValueError, match="must equal permit nonce"):
            assembler.assemble({**terms, "nonce": 5}, [], permit)

    def test_independent_nonce(self, permit_domain, ledger, terms):
        """Test that the independent scheme reads the exchange nonce."""
        domains = DomainRegistry(
            create_order_domain(EXCHANGE_ADDRESS, CHAIN_ID, version="2"), [permit_domain]
        )
        assembler = OrderAssembler(domains, ledger, {"nonce_scheme": NonceScheme.INDEPENDENT})
        ledger.set_nonce(TEST_ADDRESS, EXCHANGE_ADDRESS, 9)
        permit = create_permit(TEST_ADDRESS, EXCHANGE_ADDRESS, 5000, nonce=0, now=NOW)

        assert assembler.assemble(terms, [], permit).nonce == 9
        assert assembler.assemble({**terms, "nonce": 12}, [], permit).nonce == 12

    def test_default_expiry(self, assembler, terms):
        """Test that expiry defaults to now + configured order expiry."""
        permit = create_permit(TEST_ADDRESS, EXCHANGE_ADDRESS, 5000, nonce=0, now=NOW)
        del terms["expiry"]

        assert assembler.assemble(terms, [], permit, now=NOW).expiry == NOW + 3600

    def test_missing_terms(self, assembler):
        """Test that missing terms raise error."""
        permit = create_permit(TEST_ADDRESS, EXCHANGE_ADDRESS, 5000, nonce=0, now=NOW)

        with pytest.raises(ValueError, match="Missing order terms: payment_token_address"):
            assembler.assemble(
                {
                    "seller": TEST_ADDRESS,
                    "for_sale_token_address": TOKEN_ADDRESS,
                    "min_volume": 1,
                    "max_volume": 2,
                    "price_per_token": 3,
                },
                [],
                permit,
            )

    def test_permit_not_from_seller(self, assembler, terms):
        """Test that the permit owner must be the seller."""
        permit = create_permit("0x" + "33" * 20, EXCHANGE_ADDRESS, 5000, nonce=0, now=NOW)

        with pytest.raises(ValueError, match="is not the seller"):
            assembler.assemble(terms, [], permit)

    def test_permit_not_for_exchange(self, assembler, terms):
        """Test that the permit spender must be the exchange."""
        permit = create_permit(TEST_ADDRESS, "0x" + "bb" * 20, 5000, nonce=0, now=NOW)

        with pytest.raises(ValueError, match="is not the exchange"):
            assembler.assemble(terms, [], permit)

    def test_permit_below_min_volume(self, assembler, terms):
        """Test that the permit must cover at least the minimum volume."""
        permit = create_permit(TEST_ADDRESS, EXCHANGE_ADDRESS, 99, nonce=0, now=NOW)

        with pytest.raises(ValueError, match="below the minimum volume"):
            assembler.assemble(terms, [], permit)

    @pytest.mark.parametrize(
        "bad_terms",
        [
            {"min_volume": "100"},
            {"max_volume": 500000.0},
            {"price_per_token": None},
        ],
    )
    def test_non_integer_terms(self, assembler, terms, bad_terms):
        """Test that non-integer amounts raise ValueError, not TypeError."""
        permit = create_permit(TEST_ADDRESS, EXCHANGE_ADDRESS, 5000, nonce=0, now=NOW)

        with pytest.raises(ValueError, match="Must be an integer"):
            assembler.assemble({**terms, **bad_terms}, [], permit)

    def test_unknown_token_domain(self, assembler, terms):
        """Test that the for-sale token needs a registered domain."""
        permit = create_permit(TEST_ADDRESS, EXCHANGE_ADDRESS, 5000, nonce=0, now=NOW)

        with pytest.raises(UnknownDomain):
            assembler.assemble({**terms, "for_sale_token_address": "0x" + "44" * 20}, [], permit)


class TestSignPayload:
    """Tests for signing and self-checking payloads."""

    def test_build_payload(self, assembler, signer, terms, caplog):
        """Test the full flow produces a payload that verifies."""
        with caplog.at_level(logging.INFO, logger="pdex_sdk.orders.assembler"):
            payload = assembler.build_payload(terms, [HOUSTON], signer, permit_value=5000, now=NOW)

        assert payload.order.seller == TEST_ADDRESS
        assert payload.permit.value == 5000
        assert payload.permit.nonce == payload.order.nonce == 0
        assert assembler.verify_payload(payload) is True
        assert compute_order_id(payload.order, assembler.domains.order_domain) in caplog.text

    def test_default_permit_value(self, assembler, signer, terms):
        """Test that the permit defaults to the maximum volume."""
        payload = assembler.build_payload(terms, [], signer, now=NOW)
        assert payload.permit.value == terms["max_volume"]

    def test_signer_not_seller(self, assembler, terms):
        """Test that only the seller may sign."""
        permit = create_permit(TEST_ADDRESS, EXCHANGE_ADDRESS, 5000, nonce=0, now=NOW)
        order = assembler.assemble(terms, [], permit)

        with pytest.raises(ValueError, match="is not the seller"):
            assembler.sign(order, LocalSigner(Account.create().key))

    def test_self_check_failure(self, assembler, terms):
        """Test that a bad signature is caught before release."""
        permit = create_permit(TEST_ADDRESS, EXCHANGE_ADDRESS, 5000, nonce=0, now=NOW)
        order = assembler.assemble(terms, [], permit)

        with pytest.raises(PayloadSelfCheckFailed):
            assembler.sign(order, BrokenSigner(TEST_ADDRESS))

    def test_tampered_order(self, assembler, signer, terms):
        """Test that changing any signed field invalidates the payload."""
        payload = assembler.build_payload(terms, [HOUSTON], signer, permit_value=5000, now=NOW)
        tampered = dataclasses.replace(
            payload, order=dataclasses.replace(payload.order, price_per_token=1)
        )

        assert assembler.check_payload(tampered) is VerificationResult.INVALID_SIGNATURE

    def test_tampered_permit(self, assembler, signer, terms):
        """Test that the permit signature is checked first."""
        payload = assembler.build_payload(terms, [], signer, permit_value=5000, now=NOW)
        tampered = dataclasses.replace(
            payload,
            order=dataclasses.replace(
                payload.order, permit=dataclasses.replace(payload.permit, value=6000)
            ),
        )

        assert assembler.verify_payload(tampered) is False

    def test_rule_order_is_signed(self, assembler, signer, terms):
        """Test that reordering rules invalidates the order signature."""
        payload = assembler.build_payload(
            terms, [HOUSTON, MAX_HOLDERS], signer, permit_value=5000, now=NOW
        )
        reordered = dataclasses.replace(
            payload, order=dataclasses.replace(payload.order, rules=(MAX_HOLDERS, HOUSTON))
        )

        assert assembler.verify_payload(reordered) is False

    def test_rules_change_signature(self, assembler, signer, terms):
        """Test that orders with and without rules have distinct signatures."""
        with_rules = assembler.build_payload(terms, [HOUSTON], signer, permit_value=5000, now=NOW)
        without_rules = assembler.build_payload(terms, [], signer, permit_value=5000, now=NOW)

        assert with_rules.order_signature != without_rules.order_signature
        assert with_rules.permit_signature == without_rules.permit_signature

    def test_order_signed_under_token_domain_rejected(self, assembler, signer, terms):
        """Test that an order signature from the wrong domain fails."""
        payload = assembler.build_payload(terms, [], signer, permit_value=5000, now=NOW)
        wrong = sign_typed_data(
            assembler.domains.permit_domain(TOKEN_ADDRESS),
            ORDER_SCHEMA,
            "Order",
            payload.order.to_message(),
            signer,
        )

        assert (
            assembler.verify_payload(dataclasses.replace(payload, order_signature=wrong)) is False
        )

    def test_wire_round_trip_verifies(self, assembler, signer, terms):
        """Test that a payload parsed from its wire form still verifies."""
        payload = assembler.build_payload(terms, [HOUSTON], signer, permit_value=5000, now=NOW)

        assert assembler.verify_payload(OrderPayload.from_dict(payload.to_dict())) is True


class TestSignAsync:
    """Tests for signing with a remote wallet."""

    def test_remote_matches_local(self, assembler, signer, terms):
        """Test that a remote wallet produces the same payload."""
        permit = create_permit(TEST_ADDRESS, EXCHANGE_ADDRESS, 5000, nonce=0, now=NOW)
        order = assembler.assemble(terms, [HOUSTON], permit)
        remote = RemoteSigner(TEST_PRIVATE_KEY)

        remote_payload = asyncio.run(assembler.sign_async(order, remote))

        assert remote_payload == assembler.sign(order, signer)
        assert [request["primaryType"] for request in remote.requests] == ["Permit", "Order"]
        assert remote.requests[0]["domain"]["name"] == "Permissioned Security Token"
        assert remote.requests[1]["domain"]["name"] == "pDEX"

    def test_remote_not_seller(self, assembler, terms):
        """Test that a remote wallet for another account is rejected."""
        permit = create_permit(TEST_ADDRESS, EXCHANGE_ADDRESS, 5000, nonce=0, now=NOW)
        order = assembler.assemble(terms, [], permit)
        remote = RemoteSigner(Account.create().key)

        with pytest.raises(ValueError, match="is not the seller"):
            asyncio.run(assembler.sign_async(order, remote))
        assert remote.requests == []
