# Overview: Row-level access policy for every resource the services touch.

"""
Access policy: one predicate per (resource, action).

    Resource          | read          | create            | update                 | delete
    ------------------|---------------|-------------------|------------------------|-------
    profile           | authenticated | system only       | self (name) or admin   | never
    category          | authenticated | admin             | admin                  | admin
    product           | authenticated | active user       | active user            | admin
    stock_transaction | authenticated | active user       | never                  | never

Services call authorize() before touching the store. A denial raises
AuthorizationError; callers render it as a generic failure, so the reason is
logged but never returned to the client.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Mapping

from flask import current_app

from .models import Profile


class Resource(str, Enum):
    PROFILE = "profile"
    CATEGORY = "category"
    PRODUCT = "product"
    STOCK_TRANSACTION = "stock_transaction"


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class AuthorizationError(Exception):
    """Raised when the policy denies an operation."""

    def __init__(self, resource: Resource, action: Action, reason: str):
        self.resource = resource
        self.action = action
        self.reason = reason
        super().__init__(f"{action.value} {resource.value} denied: {reason}")


# Profile fields a user may change on their own profile
SELF_EDITABLE_PROFILE_FIELDS = frozenset({"name"})

Predicate = Callable[[Profile, Any, Mapping[str, Any]], bool]


def _authenticated(actor: Profile, row: Any, changes: Mapping[str, Any]) -> bool:
    return actor is not None


def _admin(actor: Profile, row: Any, changes: Mapping[str, Any]) -> bool:
    return actor is not None and actor.is_admin


def _active(actor: Profile, row: Any, changes: Mapping[str, Any]) -> bool:
    return actor is not None and bool(actor.is_active)


def _never(actor: Profile, row: Any, changes: Mapping[str, Any]) -> bool:
    return False


def _profile_update(actor: Profile, row: Any, changes: Mapping[str, Any]) -> bool:
    if actor is None or row is None:
        return False
    if actor.is_admin:
        return True
    return row.id == actor.id and set(changes) <= SELF_EDITABLE_PROFILE_FIELDS


POLICY: dict[Resource, dict[Action, Predicate]] = {
    Resource.PROFILE: {
        Action.READ: _authenticated,
        # Profiles are created by registration, never through the API
        Action.CREATE: _never,
        Action.UPDATE: _profile_update,
        Action.DELETE: _never,
    },
    Resource.CATEGORY: {
        Action.READ: _authenticated,
        Action.CREATE: _admin,
        Action.UPDATE: _admin,
        Action.DELETE: _admin,
    },
    Resource.PRODUCT: {
        Action.READ: _authenticated,
        Action.CREATE: _active,
        Action.UPDATE: _active,
        Action.DELETE: _admin,
    },
    Resource.STOCK_TRANSACTION: {
        Action.READ: _authenticated,
        Action.CREATE: _active,
        Action.UPDATE: _never,
        Action.DELETE: _never,
    },
}


def is_allowed(
    actor: Profile | None,
    resource: Resource,
    action: Action,
    row: Any = None,
    changes: Mapping[str, Any] | None = None,
) -> bool:
    """Evaluate the policy predicate. Unknown combinations are denied."""
    predicate = POLICY.get(resource, {}).get(action)
    if predicate is None:
        return False
    return predicate(actor, row, changes or {})


def capabilities(actor: Profile | None) -> dict[str, list[str]]:
    """Row-independent capability set for a profile, for clients to shape their UI."""
    result: dict[str, list[str]] = {}
    for resource, actions in POLICY.items():
        if resource is Resource.PROFILE:
            allowed = [Action.READ.value]
            if actor is not None:
                allowed.append(Action.UPDATE.value)
        else:
            allowed = [a.value for a, predicate in actions.items() if predicate(actor, None, {})]
        result[resource.value] = allowed
    return result


def authorize(
    context,
    resource: Resource,
    action: Action,
    row: Any = None,
    changes: Mapping[str, Any] | None = None,
) -> None:
    """
    Gate an operation for the session's profile.

    `context` is a SessionContext (or None for anonymous callers).
    """
    actor = context.profile if context is not None else None
    if is_allowed(actor, resource, action, row=row, changes=changes):
        return

    if actor is None:
        reason = "not authenticated"
    elif action in (Action.CREATE, Action.UPDATE) and POLICY[resource][action] is _active:
        reason = "profile is inactive"
    else:
        reason = f"role '{actor.role}' may not {action.value} {resource.value}"

    current_app.logger.warning(
        "Access denied: profile=%s resource=%s action=%s reason=%s",
        actor.id if actor is not None else None,
        resource.value,
        action.value,
        reason,
    )
    raise AuthorizationError(resource, action, reason)
