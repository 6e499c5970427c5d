"""Tests for DeploymentResolver — matching families, scoping, ambiguity."""

from __future__ import annotations

import pytest
from conftest import addr

from chainregistry.core.errors import AmbiguousMatchError, NotFoundError
from chainregistry.core.resolver import (
    DeploymentResolver,
    Reference,
    ResolveOutcome,
    is_address,
    parse_reference,
)


@pytest.fixture
def resolver(store, make_deployment) -> DeploymentResolver:
    """Resolver over a small multi-namespace, multi-chain registry."""
    store.put_many(
        [
            make_deployment("Token", chain_id=1, namespace="prod", address=addr(0xAAA)),
            make_deployment("Token", chain_id=10, namespace="prod", address=addr(0xBBB)),
            make_deployment("Vault", chain_id=1, namespace="prod", label="v2", address=addr(0xCCC)),
            make_deployment("Vault", chain_id=1, namespace="staging", address=addr(0xDDD)),
            make_deployment("TokenFactory", chain_id=1, namespace="prod", address=addr(0xEEE)),
        ]
    )
    return DeploymentResolver(store)


class TestParseReference:
    def test_shapes(self):
        assert parse_reference("Token") == Reference(None, None, "Token", None)
        assert parse_reference("Token:v2") == Reference(None, None, "Token", "v2")
        assert parse_reference("10/Token") == Reference(None, 10, "Token", None)
        assert parse_reference("prod/Token") == Reference("prod", None, "Token", None)
        assert parse_reference("prod/1/Token:v2") == Reference("prod", 1, "Token", "v2")

    def test_invalid_shapes(self):
        assert parse_reference("prod/main/Token") is None
        assert parse_reference("a/b/c/d") is None
        assert parse_reference("prod/") is None

    def test_is_address(self):
        assert is_address(addr(1))
        assert is_address("0x" + "Ab" * 20)
        assert not is_address("0x1234")


class TestResolve:
    def test_exact_id(self, resolver):
        """Scenario: a registered id resolves to exactly that record."""
        resolution = resolver.resolve("prod/1/Token")
        assert resolution.outcome == ResolveOutcome.MATCH
        assert resolution.deployment.address == addr(0xAAA)

    def test_namespace_scope_excludes(self, resolver):
        resolution = resolver.resolve("Token", namespace="staging")
        assert resolution.outcome == ResolveOutcome.NOT_FOUND
        assert resolution.deployment is None

    def test_address_case_insensitive(self, resolver):
        upper = "0x" + addr(0xAAA)[2:].upper()
        resolution = resolver.resolve(upper)
        assert resolution.outcome == ResolveOutcome.MATCH
        assert resolution.deployment.id == "prod/1/Token"

    def test_address_is_scoped_by_chain(self, resolver):
        assert resolver.resolve(addr(0xAAA), chain_id=10).outcome == ResolveOutcome.NOT_FOUND

    def test_bare_contract_is_ambiguous(self, resolver):
        resolution = resolver.resolve("Token")
        assert resolution.outcome == ResolveOutcome.AMBIGUOUS
        assert [d.id for d in resolution.candidates] == ["prod/1/Token", "prod/10/Token"]

    def test_chain_reference(self, resolver):
        resolution = resolver.resolve("10/Token")
        assert resolution.deployment.id == "prod/10/Token"

    def test_chain_filter_disambiguates(self, resolver):
        assert resolver.resolve("Token", chain_id=1).deployment.id == "prod/1/Token"

    def test_label_reference(self, resolver):
        assert resolver.resolve("Vault:v2").deployment.id == "prod/1/Vault:v2"

    def test_namespace_reference(self, resolver):
        assert resolver.resolve("staging/Vault").deployment.id == "staging/1/Vault"

    def test_substring_fallback(self, resolver):
        resolution = resolver.resolve("factory")
        assert resolution.outcome == ResolveOutcome.MATCH
        assert resolution.deployment.id == "prod/1/TokenFactory"

    def test_substring_only_when_structured_fails(self, resolver):
        """An exact contract match wins over the substring family."""
        ids = [d.id for d in resolver.resolve("Token", chain_id=1).candidates]
        assert ids == ["prod/1/Token"]

    def test_empty_identifier(self, resolver):
        assert resolver.resolve("   ").outcome == ResolveOutcome.NOT_FOUND

    def test_does_not_mutate_store(self, resolver, store):
        before = store.index.to_bytes()
        resolver.resolve("Token")
        assert store.index.to_bytes() == before


class TestResolveOne:
    def test_match(self, resolver):
        assert resolver.resolve_one("prod/1/Token").address == addr(0xAAA)

    def test_not_found_message_names_scope(self, resolver):
        with pytest.raises(NotFoundError) as excinfo:
            resolver.resolve_one("Token", namespace="staging", chain_id=1)
        assert str(excinfo.value) == (
            "no deployment found matching 'Token' in namespace staging, chain 1"
        )

    def test_ambiguous_lists_candidates(self, resolver):
        with pytest.raises(AmbiguousMatchError) as excinfo:
            resolver.resolve_one("Token")
        assert [d.id for d in excinfo.value.candidates] == ["prod/1/Token", "prod/10/Token"]
        assert "prod/10/Token" in str(excinfo.value)
