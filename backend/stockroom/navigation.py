# Overview: Client view routing as an explicit state machine.

"""
The client has five views and a flat path -> view mapping.

    states:      dashboard, products, categories, stock, users
    initial:     dashboard
    transition:  navigate(path); unknown paths land on dashboard
    terminal:    none (the session is long-lived)

The users view is admin-only; navigate() still moves there, and the
resolution reports allowed=False so the client renders "Access Denied".
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .models import Profile


class View(str, Enum):
    DASHBOARD = "dashboard"
    PRODUCTS = "products"
    CATEGORIES = "categories"
    STOCK = "stock"
    USERS = "users"


ROUTES: dict[str, View] = {
    "/dashboard": View.DASHBOARD,
    "/products": View.PRODUCTS,
    "/categories": View.CATEGORIES,
    "/stock": View.STOCK,
    "/users": View.USERS,
}

ADMIN_ONLY_VIEWS = frozenset({View.USERS})

INITIAL_VIEW = View.DASHBOARD


def normalize_path(path: str | None) -> str:
    if not path:
        return "/"
    path = path.split("?", 1)[0].split("#", 1)[0].strip()
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path.lower()


def view_for_path(path: str | None) -> View:
    return ROUTES.get(normalize_path(path), INITIAL_VIEW)


def path_for_view(view: View) -> str:
    for path, candidate in ROUTES.items():
        if candidate is view:
            return path
    raise KeyError(view)


def can_view(view: View, profile: Profile | None) -> bool:
    if profile is None:
        return False
    if view in ADMIN_ONLY_VIEWS:
        return profile.is_admin
    return True


@dataclass(frozen=True)
class Resolution:
    view: View
    path: str
    allowed: bool

    @property
    def admin_only(self) -> bool:
        return self.view in ADMIN_ONLY_VIEWS

    def to_dict(self) -> dict:
        return {
            "view": self.view.value,
            "path": self.path,
            "admin_only": self.admin_only,
            "allowed": self.allowed,
        }


class ViewRouter:
    """Holds the current view for one client session."""

    def __init__(self, profile: Profile | None = None):
        self.profile = profile
        self.state = INITIAL_VIEW
        self.history: list[View] = [INITIAL_VIEW]

    def navigate(self, path: str | None) -> Resolution:
        view = view_for_path(path)
        if view is not self.state:
            self.history.append(view)
        self.state = view
        return self.current()

    def current(self) -> Resolution:
        return Resolution(
            view=self.state,
            path=path_for_view(self.state),
            allowed=can_view(self.state, self.profile),
        )
