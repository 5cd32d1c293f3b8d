# Overview: Service-layer operations for user profiles; encapsulates business logic and database work.

"""
Profiles are created with their account (auth_service.register_user) and are
never deleted here.

Update rules:
- a user may rename themselves
- an admin may change name, role and is_active on any profile
- an admin may not change their own role or active flag, so the last
  administrator cannot lock everyone out
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Profile
from ..policy import Action, Resource, authorize
from ..validation import ConflictError, NotFoundError
from .concurrency import commit_or_fail

PROFILE_MUTABLE_FIELDS = {"name", "role", "is_active"}
SELF_LOCKED_FIELDS = {"role", "is_active"}


def list_profiles(context) -> list[Profile]:
    authorize(context, Resource.PROFILE, Action.READ)
    return db.session.query(Profile).order_by(Profile.created_at.desc(), Profile.id.desc()).all()


def get_profile(context, profile_id: int) -> Profile:
    authorize(context, Resource.PROFILE, Action.READ)
    profile = db.session.get(Profile, profile_id)
    if profile is None:
        raise NotFoundError("User not found")
    return profile


def update_profile(context, *, profile_id: int, patch: dict) -> Profile:
    profile = db.session.get(Profile, profile_id)
    if profile is None:
        raise NotFoundError("User not found")

    authorize(context, Resource.PROFILE, Action.UPDATE, row=profile, changes=patch)

    if profile.id == context.profile.id:
        changed = {k for k in SELF_LOCKED_FIELDS if k in patch and patch[k] != getattr(profile, k)}
        if changed:
            raise ConflictError("You cannot change your own role or active status")

    for k, v in patch.items():
        if k in PROFILE_MUTABLE_FIELDS:
            setattr(profile, k, v)

    commit_or_fail("Failed to update user")
    current_app.logger.info(
        "Profile %s updated fields=%s by profile=%s",
        profile.id, ",".join(sorted(patch.keys())), context.profile.id,
    )
    return profile
