"""Tests for TenantResolver."""

from app.services.tenant_resolver import TenantResolver


def test_resolves_connection_first(db, setup_connection):
    result = TenantResolver(db).resolve("shop-01")
    assert result.resolved
    assert result.workspace_id == setup_connection.workspace_id
    assert result.connection_id == setup_connection.id


def test_falls_back_to_legacy_tokens(db, setup_legacy_token):
    result = TenantResolver(db).resolve("legacy-line")
    assert result.workspace_id == setup_legacy_token.workspace_id
    assert result.connection_id is None


def test_unknown_instance(db, setup_connection):
    result = TenantResolver(db).resolve("does-not-exist")
    assert not result.resolved
    assert result.workspace_id is None
    assert result.connection_id is None


def test_empty_instance(db):
    assert not TenantResolver(db).resolve(None).resolved
    assert not TenantResolver(db).resolve("").resolved
