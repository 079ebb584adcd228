"""Tests for capability grants."""

from dataclasses import fields

import pytest

from collab_sessions.domain.errors import ValidationError
from collab_sessions.domain.permissions import (
    PermissionGrant,
    default_member_grant,
    default_owner_grant,
    has_capability,
    normalize_grant,
    validate_grant,
)


def _capabilities(grant: PermissionGrant) -> dict[tuple[str, str], bool]:
    result = {}
    for domain in fields(grant):
        group = getattr(grant, domain.name)
        for action in fields(group):
            result[(domain.name, action.name)] = has_capability(
                grant, domain.name, action.name
            )
    return result


def test_normalize_empty_denies_everything() -> None:
    grant = normalize_grant({})

    capabilities = _capabilities(grant)

    assert len(capabilities) == 11
    assert not any(capabilities.values())


def test_normalize_ignores_malformed_values() -> None:
    grant = normalize_grant(
        {
            "servers": {"view": "true", "control": 1, "edit": True, "launch": True},
            "backups": ["view"],
            "nodes": None,
            "ai": {"analyze": False},
            "billing": {"view": True},
        }
    )

    assert grant.servers.edit is True
    assert grant.servers.view is False
    assert grant.servers.control is False
    assert grant.backups.view is False
    assert grant.nodes.view is False
    assert not has_capability(grant, "servers", "launch")
    assert not has_capability(grant, "billing", "view")


def test_normalize_non_mapping_returns_empty_grant() -> None:
    assert normalize_grant(None) == PermissionGrant()
    assert normalize_grant("servers.view") == PermissionGrant()
    assert normalize_grant([{"servers": {"view": True}}]) == PermissionGrant()


def test_owner_grant_allows_everything() -> None:
    assert all(_capabilities(default_owner_grant()).values())


def test_member_grant_is_view_only() -> None:
    capabilities = _capabilities(default_member_grant())

    allowed = {key for key, value in capabilities.items() if value}
    assert allowed == {("servers", "view"), ("backups", "view"), ("nodes", "view")}


def test_grant_dict_shape_survives_normalization() -> None:
    grant = default_member_grant()

    payload = grant.to_dict()

    assert payload["servers"] == {
        "view": True,
        "control": False,
        "edit": False,
        "delete": False,
    }
    assert payload["ai"] == {"analyze": False}
    assert normalize_grant(payload) == grant


def test_has_capability_denies_missing_grant() -> None:
    assert has_capability(None, "servers", "view") is False


def test_validate_accepts_partial_grant_and_ignores_unknown_keys() -> None:
    grant = validate_grant(
        {
            "servers": {"view": True, "control": False, "launch": "yes"},
            "ai": {"analyze": True},
            "billing": 1,
        }
    )

    assert grant.servers.view is True
    assert grant.servers.control is False
    assert grant.ai.analyze is True
    assert grant.backups == PermissionGrant().backups


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ({"servers": {"view": "true"}}, "permissions.servers.view must be a boolean"),
        ({"backups": {"restore": 1}}, "permissions.backups.restore must be a boolean"),
        ({"nodes": ["view"]}, "permissions.nodes must be an object"),
        ([{"servers": {"view": True}}], "permissions must be an object"),
    ],
)
def test_validate_rejects_malformed_grants(raw: object, message: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate_grant(raw)

    assert excinfo.value.message == message
