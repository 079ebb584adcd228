"""Capability grants for session members.

A grant is a fixed structure of boolean capabilities grouped by resource
domain. Anything that is not a literal ``True`` is treated as denied, so a
grant built from missing or malformed data never allows more than it says.
"""

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields

from collab_sessions.domain.errors import ValidationError


@dataclass(frozen=True)
class ServerPermissions:
    """Capabilities over managed servers."""

    view: bool = False
    control: bool = False
    edit: bool = False
    delete: bool = False


@dataclass(frozen=True)
class BackupPermissions:
    """Capabilities over server backups."""

    view: bool = False
    create: bool = False
    restore: bool = False
    delete: bool = False


@dataclass(frozen=True)
class NodePermissions:
    """Capabilities over nodes."""

    view: bool = False
    control: bool = False


@dataclass(frozen=True)
class AiPermissions:
    """Capabilities over AI tooling."""

    analyze: bool = False


@dataclass(frozen=True)
class PermissionGrant:
    """Default-deny capability grant across all resource domains."""

    servers: ServerPermissions = field(default_factory=ServerPermissions)
    backups: BackupPermissions = field(default_factory=BackupPermissions)
    nodes: NodePermissions = field(default_factory=NodePermissions)
    ai: AiPermissions = field(default_factory=AiPermissions)

    def allows(self, domain: str, action: str) -> bool:
        """Return whether the grant allows an action within a domain."""
        group = _domain_group(self, domain)
        if group is None or action not in _field_names(type(group)):
            return False
        return getattr(group, action) is True

    def to_dict(self) -> dict[str, dict[str, bool]]:
        """Return the JSON shape used on the wire and in storage."""
        return asdict(self)


_DOMAINS: dict[str, type] = {
    "servers": ServerPermissions,
    "backups": BackupPermissions,
    "nodes": NodePermissions,
    "ai": AiPermissions,
}


def default_owner_grant() -> PermissionGrant:
    """Return the grant held by a session owner: every capability."""
    return PermissionGrant(
        servers=ServerPermissions(view=True, control=True, edit=True, delete=True),
        backups=BackupPermissions(view=True, create=True, restore=True, delete=True),
        nodes=NodePermissions(view=True, control=True),
        ai=AiPermissions(analyze=True),
    )


def default_member_grant() -> PermissionGrant:
    """Return the grant applied to accepted members without an explicit one."""
    return PermissionGrant(
        servers=ServerPermissions(view=True),
        backups=BackupPermissions(view=True),
        nodes=NodePermissions(view=True),
    )


def normalize_grant(raw: object) -> PermissionGrant:
    """Coerce arbitrary data into a grant; never raises."""
    if isinstance(raw, PermissionGrant):
        return raw
    if not isinstance(raw, Mapping):
        return PermissionGrant()
    groups: dict[str, object] = {}
    for domain, group_type in _DOMAINS.items():
        values = raw.get(domain)
        if not isinstance(values, Mapping):
            values = {}
        groups[domain] = group_type(
            **{name: values.get(name) is True for name in _field_names(group_type)}
        )
    return PermissionGrant(**groups)


def validate_grant(raw: object) -> PermissionGrant:
    """Strictly parse a caller-supplied grant.

    Known domains must be mappings and known capabilities booleans; anything
    else raises ``ValidationError``. Unknown keys are ignored.
    """
    if not isinstance(raw, Mapping):
        raise ValidationError("permissions must be an object")
    for domain, group_type in _DOMAINS.items():
        if domain not in raw:
            continue
        values = raw[domain]
        if not isinstance(values, Mapping):
            raise ValidationError(f"permissions.{domain} must be an object")
        for name in _field_names(group_type):
            if name in values and not isinstance(values[name], bool):
                raise ValidationError(
                    f"permissions.{domain}.{name} must be a boolean"
                )
    return normalize_grant(raw)


def has_capability(grant: PermissionGrant | None, domain: str, action: str) -> bool:
    """Return whether a grant allows an action; absent grants deny."""
    if grant is None:
        return False
    return grant.allows(domain, action)


def _domain_group(grant: PermissionGrant, domain: str) -> object | None:
    if domain not in _DOMAINS:
        return None
    return getattr(grant, domain)


def _field_names(group_type: type) -> tuple[str, ...]:
    return tuple(item.name for item in fields(group_type))
