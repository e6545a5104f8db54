"""
Tax rate preset service.

Presets are named regional tax splits (CGST/SGST/IGST). Everyone may read
them; only admins change them. Quotes copy a preset's rates when they are
priced, so editing or deleting a preset never touches existing quotes.
"""
import logging
from datetime import date

from quotedesk.models import TaxRatePreset, AuditAction
from quotedesk.models.tax_rate_preset import COMPONENTS
from quotedesk.decorators.permissions import check_permission, EDIT_SETTINGS, VIEW
from quotedesk.exceptions import NotFoundError, ValidationError
from quotedesk.services.audit_service import log_action
from quotedesk.services.pricing_service import RATE_PLACES, check_places, to_decimal

logger = logging.getLogger(__name__)

TAX_RATE = 'tax_rate'


def _clean(payload: dict, partial=False) -> dict:
    data = {}
    if not partial or 'region' in payload:
        region = (payload.get('region') or '').strip()
        if not region:
            raise ValidationError('region', 'region is required')
        data['region'] = region
    if 'tax_type' in payload:
        data['tax_type'] = (payload.get('tax_type') or '').strip() or 'GST'

    for _, attr in COMPONENTS:
        if attr in payload:
            value = payload[attr] if payload[attr] is not None else 0
            rate = check_places(to_decimal(value, attr), RATE_PLACES, attr)
            if rate < 0 or rate > 100:
                raise ValidationError(attr, 'must be between 0 and 100')
            data[attr] = rate

    if 'active' in payload:
        data['active'] = bool(payload['active'])
    if payload.get('effective_from'):
        try:
            data['effective_from'] = date.fromisoformat(str(payload['effective_from']))
        except ValueError:
            raise ValidationError('effective_from', 'expected a YYYY-MM-DD date')
    elif not partial:
        data['effective_from'] = date.today()
    return data


def get_preset(session, preset_id: int) -> TaxRatePreset:
    preset = session.query(TaxRatePreset).filter(TaxRatePreset.id == preset_id).first()
    if not preset:
        raise NotFoundError(f'Tax rate {preset_id} not found')
    return preset


def list_presets(session, actor, active_only=False):
    """Presets, newest effective date first."""
    check_permission(actor, VIEW)
    query = session.query(TaxRatePreset)
    if active_only:
        query = query.filter(TaxRatePreset.active.is_(True))
    return query.order_by(TaxRatePreset.effective_from.desc(), TaxRatePreset.id.desc()).all()


def preset_for_region(session, region: str) -> TaxRatePreset:
    """The active preset for `region` with the latest effective date."""
    preset = (
        session.query(TaxRatePreset)
        .filter(TaxRatePreset.region == region, TaxRatePreset.active.is_(True))
        .order_by(TaxRatePreset.effective_from.desc(), TaxRatePreset.id.desc())
        .first()
    )
    if not preset:
        raise NotFoundError(f'No active tax rate for region {region!r}')
    return preset


def resolve_tax_rates(session, preset_id) -> list:
    """Rates of an active preset, for pricing a quote."""
    preset = session.query(TaxRatePreset).filter(TaxRatePreset.id == preset_id).first()
    if not preset:
        raise ValidationError('tax_rate_preset_id', f'unknown tax rate {preset_id!r}')
    if not preset.active:
        raise ValidationError('tax_rate_preset_id', f'tax rate {preset.region!r} is inactive')
    return preset.tax_rates()


def create_preset(session, payload: dict, actor) -> TaxRatePreset:
    check_permission(actor, EDIT_SETTINGS)
    data = _clean(payload)

    try:
        preset = TaxRatePreset(created_by=actor.id, **data)
        session.add(preset)
        session.flush()
        log_action(session, AuditAction.TAX_RATE_CREATED, actor, TAX_RATE, preset.id,
                   details={'region': preset.region})
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Tax rate {preset.id} ({preset.region}) created by user {actor.id}")
    return preset


def update_preset(session, preset_id: int, payload: dict, actor) -> TaxRatePreset:
    check_permission(actor, EDIT_SETTINGS)
    preset = get_preset(session, preset_id)
    data = _clean(payload, partial=True)
    if not data:
        raise ValidationError('tax_rate', 'no values supplied')

    try:
        for field, value in data.items():
            setattr(preset, field, value)
        log_action(session, AuditAction.TAX_RATE_UPDATED, actor, TAX_RATE, preset.id,
                   details={'fields': sorted(data)})
        session.commit()
    except Exception:
        session.rollback()
        raise
    return preset


def delete_preset(session, preset_id: int, actor) -> None:
    check_permission(actor, EDIT_SETTINGS)
    preset = get_preset(session, preset_id)

    try:
        region = preset.region
        session.delete(preset)
        log_action(session, AuditAction.TAX_RATE_DELETED, actor, TAX_RATE, preset_id,
                   details={'region': region})
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Tax rate {preset_id} ({region}) deleted by user {actor.id}")
