"""Error taxonomy for the authorization engine.

A policy "no" is never an error: the resolver returns False for it.
"""

from __future__ import annotations


class AuthzError(Exception):
    """Base class for engine errors."""


class NotFoundError(AuthzError):
    """A referenced role, permission, subject or assignment does not exist."""

    def __init__(self, kind: str, identifier: object) -> None:
        super().__init__(f"{kind} {identifier!r} not found")
        self.kind = kind
        self.identifier = identifier


class ConflictError(AuthzError):
    """A unique key (permission, role name, assignment tuple) already exists."""


class ForbiddenError(AuthzError):
    """Mutation attempted against a system role."""


class InvalidStateError(AuthzError):
    """Stored data breaks an invariant, e.g. a cycle in the role hierarchy."""


class InvalidInputError(AuthzError, ValueError):
    """An argument is malformed, e.g. a blank name or a delegation ending in the past."""
