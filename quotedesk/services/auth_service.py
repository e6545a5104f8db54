"""
Authentication service for user management.

Handles password login and user management.
"""
from quotedesk.models import User, UserRole, UserStatus, AuditAction
from quotedesk.exceptions import BusinessLogicError, NotFoundError, UnauthorizedError, ValidationError
from quotedesk.decorators.permissions import check_permission, MANAGE_USERS
from quotedesk.services.audit_service import log_action
from sqlalchemy.exc import IntegrityError
import logging

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def authenticate(session, email, password):
    """
    Return the active user matching email + password.

    Raises:
        UnauthorizedError: unknown email, wrong password or inactive account
    """
    email = (email or '').strip().lower()
    if not email or not password:
        raise ValidationError('email', 'email and password are required')

    user = session.query(User).filter_by(email=email).first()
    if not user or not user.check_password(password) or not user.is_active:
        logger.warning(f"Failed login attempt for {email}")
        raise UnauthorizedError('Invalid email or password')

    logger.info(f"User {user.id} logged in")
    return user


def create_user(session, email, password, name, role='user', created_by=None):
    """
    Create a user account.

    Args:
        created_by: acting user, or None when called from the CLI

    Returns:
        User: the new user
    """
    email = (email or '').strip().lower()
    if '@' not in email:
        raise ValidationError('email', 'a valid email is required')
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError('password', f'must be at least {MIN_PASSWORD_LENGTH} characters')
    if not (name or '').strip():
        raise ValidationError('name', 'is required')
    try:
        user_role = UserRole(getattr(role, 'value', role))
    except ValueError:
        raise ValidationError('role', f'unknown role {role!r}')

    try:
        user = User(email=email, name=name.strip(), role=user_role, status=UserStatus.ACTIVE)
        user.set_password(password)
        session.add(user)
        session.flush()
        log_action(session, AuditAction.USER_CREATED, created_by, 'user', user.id,
                   details={'email': email, 'role': user_role.value})
        session.commit()
    except IntegrityError:
        session.rollback()
        raise BusinessLogicError(f'A user with email {email} already exists', status_code=409)
    except Exception:
        session.rollback()
        raise

    logger.info(f"Created user {user.id} ({email}) with role {user_role.value}")
    return user


def list_users(session, actor, include_inactive=False):
    """Users ordered by name; admins only."""
    check_permission(actor, MANAGE_USERS)
    query = session.query(User)
    if not include_inactive:
        query = query.filter(User.status == UserStatus.ACTIVE)
    return query.order_by(User.name.asc(), User.id.asc()).all()


def deactivate_user(session, user_id, actor):
    """
    Deactivate a user account.

    The row is kept so quotes and audit entries still resolve their owner;
    an inactive user can no longer log in.
    """
    check_permission(actor, MANAGE_USERS)
    if user_id == actor.id:
        raise BusinessLogicError('Cannot delete your own account')

    try:
        user = session.query(User).filter(User.id == user_id).with_for_update().first()
        if not user:
            raise NotFoundError(f'User {user_id} not found')
        if user.status != UserStatus.INACTIVE:
            user.status = UserStatus.INACTIVE
            log_action(session, AuditAction.USER_DEACTIVATED, actor, 'user', user.id,
                       details={'email': user.email})
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"User {user_id} deactivated by user {actor.id}")
    return user
