"""
Permission checks for role-based access control.

Roles map to an explicit capability set; services call `check_permission`
before touching the workflow, and views use the `require_permission`
decorator.
"""

from functools import wraps
from flask import g

from quotedesk.exceptions import UnauthorizedError

VIEW = 'view'
MANAGE_CLIENTS = 'manage_clients'
CREATE_QUOTES = 'create_quotes'
EDIT_QUOTES = 'edit_quotes'
DELETE_QUOTES = 'delete_quotes'
SEND_QUOTES = 'send_quotes'
APPROVE_QUOTES = 'approve_quotes'
REJECT_QUOTES = 'reject_quotes'
CONVERT_QUOTES = 'convert_quotes'
RECORD_PAYMENTS = 'record_payments'
EMAIL_DOCUMENTS = 'email_documents'
EDIT_SETTINGS = 'edit_settings'
MANAGE_USERS = 'manage_users'

# Permission map
PERMISSION_MAP = {
    'admin': 'all',  # Admin has all permissions
    'manager': frozenset({
        VIEW, MANAGE_CLIENTS,
        CREATE_QUOTES, EDIT_QUOTES, DELETE_QUOTES,
        SEND_QUOTES, APPROVE_QUOTES, REJECT_QUOTES, CONVERT_QUOTES,
        RECORD_PAYMENTS, EMAIL_DOCUMENTS,
    }),
    'user': frozenset({
        VIEW, MANAGE_CLIENTS,
        CREATE_QUOTES, EDIT_QUOTES, DELETE_QUOTES, SEND_QUOTES,
    }),
    'viewer': frozenset({VIEW}),
}

# Permission required for each quote workflow action
QUOTE_ACTION_PERMISSIONS = {
    'send': SEND_QUOTES,
    'approve': APPROVE_QUOTES,
    'reject': REJECT_QUOTES,
}

# Roles allowed to act on records owned by someone else
CROSS_OWNER_ROLES = {
    'client': frozenset({'admin'}),
    'quote': frozenset({'admin', 'manager'}),
}


def _role_of(actor):
    role = getattr(actor, 'role', None)
    return getattr(role, 'value', role)


def has_permission(role, permission_name):
    """Check whether a role (string or UserRole) grants a permission."""
    role = getattr(role, 'value', role)
    role_permissions = PERMISSION_MAP.get(role)
    if role_permissions is None:
        return False
    if role_permissions == 'all':
        return True
    return permission_name in role_permissions


def check_permission(actor, permission_name):
    """Raise UnauthorizedError unless the actor's role grants the permission."""
    role = _role_of(actor)
    if not has_permission(role, permission_name):
        raise UnauthorizedError(
            f"Role '{role}' is not allowed to {permission_name.replace('_', ' ')}",
            payload={'permission': permission_name},
        )


def check_ownership(actor, owner_id, entity_type):
    """Owners may always act on their records; other roles per CROSS_OWNER_ROLES."""
    if getattr(actor, 'id', None) == owner_id:
        return
    if _role_of(actor) in CROSS_OWNER_ROLES.get(entity_type, frozenset()):
        return
    raise UnauthorizedError(f"You can only modify your own {entity_type}s")


def require_permission(permission_name):
    """
    Decorator to check for specific permission.

    Usage:
        @require_permission('convert_quotes')

    Must be used AFTER require_login.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            check_permission(g.user, permission_name)
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def admin_only(f):
    """
    Shortcut decorator for admin-only routes.
    """
    return require_permission(MANAGE_USERS)(f)
