import logging
from dataclasses import dataclass, field
from functools import wraps

from flask import current_app, request
from flask_login import current_user

from errors import AuthorizationError
from models import Lifecycle, Permission, Role


@dataclass(frozen=True)
class Caller:
    """Claims of the authenticated identity, passed explicitly into storage."""

    user_id: str
    role: Role = Role.USER
    permissions: frozenset = field(default_factory=frozenset)
    is_super_admin: bool = False

    @classmethod
    def from_user(cls, user):
        is_super_admin = user.id == current_app.config['SUPER_ADMIN_ID']
        permissions = set()
        for name in user.permissions or []:
            try:
                permissions.add(Permission(name))
            except ValueError:
                logging.warning(f"Ignoring unknown permission {name!r} on user {user.id}")
        return cls(
            user_id=user.id,
            role=Role.SUPER_ADMIN if is_super_admin else (user.role or Role.USER),
            permissions=frozenset(permissions),
            is_super_admin=is_super_admin,
        )

    def can(self, permission):
        if self.is_super_admin:
            return True
        return Permission.ADMIN in self.permissions or permission in self.permissions


class OwnershipPolicy:
    """Visibility rules shared by every owner-scoped model.

    Anonymous callers see active rows of every owner. Other callers are
    pinned to their own rows, except the super-admin who is not filtered
    by owner at all. Listings default to active rows for everyone; single
    row lookups by an identified caller also reach inactive rows so that
    soft-deleted items can still be edited or deleted again.
    """

    def __init__(self, model):
        self.model = model

    def scope(self, stmt, caller=None, listing=False, include_inactive=False):
        model = self.model
        if caller is None:
            return stmt.where(model.status == Lifecycle.ACTIVE)
        if not caller.is_super_admin:
            stmt = stmt.where(model.owner_id == caller.user_id)
        if listing and not include_inactive:
            stmt = stmt.where(model.status == Lifecycle.ACTIVE)
        return stmt


def caller_required(view):
    """Reject anonymous requests and hand the view a Caller as first argument."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return current_app.login_manager.unauthorized()
        return view(Caller.from_user(current_user), *args, **kwargs)

    return wrapper


def super_admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return current_app.login_manager.unauthorized()
        caller = Caller.from_user(current_user)
        if not caller.is_super_admin:
            logging.warning(f"Denied {request.method} {request.path} to {caller.user_id} from {request.remote_addr}")
            raise AuthorizationError()
        return view(caller, *args, **kwargs)

    return wrapper


def permission_required(permission):
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                return current_app.login_manager.unauthorized()
            caller = Caller.from_user(current_user)
            if not caller.can(permission):
                logging.warning(f"{caller.user_id} lacks {permission.value} for {request.path}")
                raise AuthorizationError()
            return view(caller, *args, **kwargs)

        return wrapper

    return decorator
