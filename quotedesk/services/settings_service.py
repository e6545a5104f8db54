"""Settings service - key/value settings with config fallbacks."""
import logging
from flask import current_app, has_app_context

from quotedesk.models import Setting, AuditAction
from quotedesk.decorators.permissions import check_permission, EDIT_SETTINGS
from quotedesk.exceptions import ValidationError
from quotedesk.services.audit_service import log_action

logger = logging.getLogger(__name__)

# Setting key -> config attribute used when the key is not stored
SETTING_DEFAULTS = {
    'companyName': 'BUSINESS_NAME',
    'companyAddress': 'BUSINESS_ADDRESS',
    'companyEmail': 'BUSINESS_EMAIL',
    'companyPhone': 'BUSINESS_PHONE',
    'quotePrefix': 'QUOTE_PREFIX',
    'invoicePrefix': 'INVOICE_PREFIX',
    'paymentTermDays': 'PAYMENT_TERM_DAYS',
}

FALLBACKS = {
    'QUOTE_PREFIX': 'QT',
    'INVOICE_PREFIX': 'INV',
    'PAYMENT_TERM_DAYS': 30,
}


def _config_default(key):
    config_key = SETTING_DEFAULTS.get(key)
    if not config_key:
        return None
    if has_app_context():
        return current_app.config.get(config_key, FALLBACKS.get(config_key))
    return FALLBACKS.get(config_key)


def get_setting(session, key, default=None):
    """Stored value for `key`, else the config default, else `default`."""
    setting = session.query(Setting).filter(Setting.key == key).first()
    if setting is not None:
        return setting.value
    value = _config_default(key)
    return default if value is None else value


def get_all_settings(session):
    """All known settings as a dict, stored values overriding defaults."""
    values = {key: _config_default(key) for key in SETTING_DEFAULTS}
    for setting in session.query(Setting).all():
        values[setting.key] = setting.value
    return values


def get_payment_term_days(session) -> int:
    value = get_setting(session, 'paymentTermDays')
    try:
        days = int(value)
    except (TypeError, ValueError):
        raise ValidationError('paymentTermDays', f'invalid payment term {value!r}')
    if days < 0:
        raise ValidationError('paymentTermDays', 'cannot be negative')
    return days


def _validate(key, value):
    if key not in SETTING_DEFAULTS:
        raise ValidationError(key, 'unknown setting')
    value = str(value).strip() if value is not None else ''
    if key in ('quotePrefix', 'invoicePrefix', 'companyName') and not value:
        raise ValidationError(key, 'is required')
    if key == 'paymentTermDays':
        if not value.isdigit():
            raise ValidationError(key, 'must be a whole number of days')
    return value


def update_settings(session, values: dict, actor) -> dict:
    """Upsert settings (admin only) and return the full settings map."""
    check_permission(actor, EDIT_SETTINGS)
    if not values:
        raise ValidationError('settings', 'no values supplied')

    try:
        cleaned = {key: _validate(key, value) for key, value in values.items()}

        for key, value in cleaned.items():
            setting = session.query(Setting).filter(Setting.key == key).first()
            if setting is None:
                session.add(Setting(key=key, value=value, updated_by=actor.id))
            else:
                setting.value = value
                setting.updated_by = actor.id

        log_action(session, AuditAction.SETTINGS_CHANGED, actor, 'settings',
                   details={'keys': sorted(cleaned)})
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Settings updated by user {actor.id}: {sorted(cleaned)}")
    return get_all_settings(session)
