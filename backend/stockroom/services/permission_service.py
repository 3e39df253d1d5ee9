# Overview: Permission Provider boundary and capability enforcement for core mutations.

"""
Permission checking for the inventory core.

WHY: Identity lives outside this system. The core only consumes a
capability check, `has_permission(capability) -> bool`, and refuses every
mutating operation whose capability is missing. Reads need no capability.

DESIGN PRINCIPLES:
- Fail closed: unknown roles get no capabilities
- Log denials only: grants are not logged
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from flask import current_app, has_app_context

from ..permissions import get_role_permissions, validate_permission_code, get_all_permission_codes


class PermissionDeniedError(Exception):
    """Raised when the caller lacks a required capability."""
    def __init__(self, capability: str, message: str | None = None):
        super().__init__(message or f"Missing capability: {capability}")
        self.capability = capability


class PermissionProvider(ABC):
    """Capability check supplied by the identity provider."""

    @abstractmethod
    def has_permission(self, capability: str) -> bool:
        ...


class RolePermissionProvider(PermissionProvider):
    """Grants the default capabilities of a named role (admin, manager, staff)."""

    def __init__(self, role: str):
        self.role = role
        self._capabilities = get_role_permissions(role)

    def has_permission(self, capability: str) -> bool:
        return capability in self._capabilities

    def __repr__(self) -> str:
        return f"<RolePermissionProvider role={self.role!r}>"


class StaticPermissionProvider(PermissionProvider):
    """Grants exactly the given capabilities."""

    def __init__(self, capabilities):
        self._capabilities = frozenset(capabilities)

    def has_permission(self, capability: str) -> bool:
        return capability in self._capabilities


class SystemPermissionProvider(PermissionProvider):
    """Trusted internal caller (CLI, seeding). Grants every capability."""

    def has_permission(self, capability: str) -> bool:
        return True


SYSTEM = SystemPermissionProvider()


def require_capability(permissions: PermissionProvider | None, capability: str) -> None:
    """
    Raise PermissionDeniedError unless the provider grants `capability`.

    A missing provider is treated as an anonymous caller and denied.
    """
    if not validate_permission_code(capability):
        raise ValueError(f"Unknown capability: {capability}")

    if permissions is not None and permissions.has_permission(capability):
        return

    if has_app_context():
        current_app.logger.warning("Permission denied: %s lacks %s", permissions, capability)
    raise PermissionDeniedError(capability)


def granted_capabilities(permissions: PermissionProvider) -> list[str]:
    """All capability codes the provider grants, in catalogue order."""
    return [code for code in get_all_permission_codes() if permissions.has_permission(code)]
