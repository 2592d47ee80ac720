"""Lease engine: contract formation, activation, termination and renewal.

Status during signing follows the signatures on file rather than a fixed
order: none is Draft, one is the Pending state of the missing signer, both
is Active. Activation publishes ``lease-activated``, which the payment
schedule engine turns into the lease's schedule in the same transaction.
"""
import logging
from datetime import datetime

from dateutil.relativedelta import relativedelta
from flask import current_app

from rentflow import db, events
from rentflow.errors import (
    ConflictingActiveLease,
    ConcurrencyConflict,
    InvalidTransition,
    NotAuthorized,
    ValidationError,
)
from rentflow.models import Lease, PaymentScheduleEntry, Property, RentalApplication, User
from rentflow.models.audit_log import AuditLog
from rentflow.models.enums import (
    ApplicationStatus,
    LeaseStatus,
    LeaseType,
    PaymentStatus,
    SignerRole,
    TerminationReason,
    LEASE_SIGNING_STATUSES,
    PAYMENT_OPEN_STATUSES,
)
from rentflow.services.transactions import optimistic_transaction, get_or_raise
from rentflow.utils.money import to_money
from rentflow.utils.validators import parse_bool, parse_date, parse_enum, parse_int, clean_text

logger = logging.getLogger(__name__)

RENEWABLE_STATUSES = frozenset({LeaseStatus.ACTIVE, LeaseStatus.EXPIRED})


def can_view(lease, user):
    return user.is_admin() or user.id in (lease.tenant_id, lease.landlord_id)


def visible_leases(user):
    """Query of leases ``user`` may read"""
    if user.is_admin():
        return Lease.query
    if user.is_landlord():
        return Lease.query.filter(Lease.landlord_id == user.id)
    return Lease.query.filter(Lease.tenant_id == user.id)


def get_lease(lease_id, user):
    lease = get_or_raise(Lease, lease_id, 'Lease')
    if not can_view(lease, user):
        raise NotAuthorized('You cannot view this lease')
    return lease


def find_active_lease(property_id, exclude_ids=()):
    query = Lease.query.filter(
        Lease.property_id == property_id,
        Lease.status == LeaseStatus.ACTIVE.value,
    )
    exclude_ids = [lease_id for lease_id in exclude_ids if lease_id]
    if exclude_ids:
        query = query.filter(Lease.id.notin_(exclude_ids))
    return query.first()


def _require_manager(lease_or_property, user):
    property = lease_or_property.property if isinstance(lease_or_property, Lease) else lease_or_property
    if not user.can_manage_property(property):
        raise NotAuthorized('Only the property landlord or an admin can do this')


def _conflict_on_sign(error, lease_id, *args, **kwargs):
    lease = db.session.get(Lease, lease_id)
    return ConflictingActiveLease(lease.property_id if lease else None)


def _conflict_on_create(error, user, params, *args, **kwargs):
    return ConflictingActiveLease(params.get('property_id'))


def _parse_terms(params, defaults=None):
    """Validate the money and rule terms shared by create and renew"""
    defaults = defaults or {}

    def pick(key):
        value = params.get(key)
        return defaults.get(key) if value is None else value

    terms = {
        'monthly_rent': to_money(pick('monthly_rent'), 'monthly_rent'),
        'security_deposit': to_money(pick('security_deposit') or 0, 'security_deposit', allow_zero=True),
        'payment_due_day': parse_int(pick('payment_due_day'), 'payment_due_day',
                                     minimum=1, maximum=31, required=False, default=1),
        'late_fee_amount': to_money(pick('late_fee_amount') or 0, 'late_fee_amount', allow_zero=True),
        'late_fee_grace_days': parse_int(pick('late_fee_grace_days'), 'late_fee_grace_days',
                                         minimum=0, required=False, default=0),
        'lease_type': parse_enum(pick('lease_type'), LeaseType, 'lease_type',
                                 required=False, default=LeaseType.FIXED).value,
        'pets_allowed': parse_bool(pick('pets_allowed'), 'pets_allowed'),
        'smoking_allowed': parse_bool(pick('smoking_allowed'), 'smoking_allowed'),
        'subletting_allowed': parse_bool(pick('subletting_allowed'), 'subletting_allowed'),
    }

    currency = (pick('currency') or current_app.config['DEFAULT_CURRENCY']).strip().upper()
    if len(currency) != 3 or not currency.isalpha():
        raise ValidationError('currency must be a 3-letter ISO code', field='currency')
    terms['currency'] = currency
    return terms


def _record_signature(lease, role, blob, now):
    if not blob or not str(blob).strip():
        raise ValidationError('signature is required', field='signature')
    if role == SignerRole.TENANT:
        lease.tenant_signature = str(blob)
        lease.tenant_signed_at = now
    else:
        lease.landlord_signature = str(blob)
        lease.landlord_signed_at = now


def _activate(lease, actor_id, now):
    """Make ``lease`` the property's Active lease and fire schedule generation"""
    renewing = lease.previous_lease
    if renewing is not None and renewing.status not in RENEWABLE_STATUSES:
        renewing = None

    exclude = [lease.id, renewing.id if renewing is not None else None]
    active = find_active_lease(lease.property_id, exclude_ids=exclude)
    if active is not None:
        raise ConflictingActiveLease(lease.property_id, active_lease_id=active.id)

    if renewing is not None:
        renewing.status = LeaseStatus.RENEWED.value
        # Release the active slot before this lease claims it
        db.session.flush()

    lease.status = LeaseStatus.ACTIVE.value
    lease.activated_at = now
    db.session.flush()

    events.publish(
        events.lease_activated, lease, 'lease',
        actor_id=actor_id,
        property_id=lease.property_id,
        tenant_id=lease.tenant_id,
        landlord_id=lease.landlord_id,
    )
    if renewing is not None:
        events.publish(
            events.lease_renewed, renewing, 'lease',
            actor_id=actor_id,
            renewed_by_lease_id=lease.id,
        )
    logger.info(f'Lease {lease.id} active on property {lease.property_id}')


@optimistic_transaction(on_integrity_error=_conflict_on_create)
def create_lease(user, params, now=None):
    """Draft a lease, optionally seeded from an Approved application."""
    now = now or datetime.utcnow()
    if not (user.is_landlord() or user.is_admin()):
        raise NotAuthorized('Only landlords can create leases')

    application = None
    application_id = parse_int(params.get('application_id'), 'application_id', required=False)
    if application_id is not None:
        application = get_or_raise(RentalApplication, application_id, 'Application')
        if application.status != ApplicationStatus.APPROVED:
            raise InvalidTransition(
                f'Leases can only be created from Approved applications, this one is {application.status}',
                current_status=application.status,
            )
        property_id = application.property_id
        tenant_id = application.tenant_id
    else:
        property_id = parse_int(params.get('property_id'), 'property_id')
        tenant_id = parse_int(params.get('tenant_id'), 'tenant_id')

    property = get_or_raise(Property, property_id, 'Property')
    _require_manager(property, user)

    tenant = get_or_raise(User, tenant_id, 'Tenant')
    if not tenant.is_tenant():
        raise ValidationError('tenant_id must reference a tenant', field='tenant_id')

    start_date = parse_date(params.get('start_date'), 'start_date', required=application is None)
    if start_date is None:
        start_date = application.desired_move_in_date
    end_date = parse_date(params.get('end_date'), 'end_date', required=application is None)
    if end_date is None:
        end_date = start_date + relativedelta(months=application.lease_term_months)
    if end_date <= start_date:
        raise ValidationError('end_date must be after start_date', field='end_date')

    terms = _parse_terms(params)

    active = find_active_lease(property.id)
    if active is not None:
        raise ConflictingActiveLease(property.id, active_lease_id=active.id)

    lease = Lease(
        application_id=application.id if application else None,
        property_id=property.id,
        tenant_id=tenant.id,
        landlord_id=property.landlord_id,
        status=LeaseStatus.DRAFT.value,
        start_date=start_date,
        end_date=end_date,
        special_terms=clean_text(params.get('special_terms'), 'special_terms'),
        **terms
    )
    db.session.add(lease)
    db.session.flush()

    # Signatures captured before the lease was entered, e.g. a wet-ink tenant copy
    if params.get('landlord_signature'):
        if user.id != lease.landlord_id:
            raise NotAuthorized('Only the landlord can pre-sign as landlord')
        _record_signature(lease, SignerRole.LANDLORD, params['landlord_signature'], now)
    if params.get('tenant_signature'):
        _record_signature(lease, SignerRole.TENANT, params['tenant_signature'], now)

    AuditLog.log(
        action='lease-created',
        user_id=user.id,
        resource_type='lease',
        resource_id=lease.id,
        details={
            'property_id': lease.property_id,
            'tenant_id': lease.tenant_id,
            'application_id': lease.application_id,
            'start_date': start_date.isoformat(),
            'end_date': end_date.isoformat(),
        }
    )

    status = lease.signature_status()
    if status == LeaseStatus.ACTIVE:
        _activate(lease, user.id, now)
    else:
        lease.status = status.value
    logger.info(f'Lease {lease.id} created for property {property.id} in {lease.status}')
    return lease


@optimistic_transaction()
def update_lease(lease_id, user, params):
    """Edit the dates and terms of a Draft lease; omitted fields keep their value."""
    lease = get_or_raise(Lease, lease_id, 'Lease')
    _require_manager(lease, user)

    if lease.status != LeaseStatus.DRAFT:
        raise InvalidTransition(f'Only Draft leases can be edited, lease is {lease.status}',
                                current_status=lease.status)

    start_date = parse_date(params.get('start_date'), 'start_date', required=False) or lease.start_date
    end_date = parse_date(params.get('end_date'), 'end_date', required=False) or lease.end_date
    if end_date <= start_date:
        raise ValidationError('end_date must be after start_date', field='end_date')

    current = {
        'monthly_rent': lease.monthly_rent,
        'security_deposit': lease.security_deposit,
        'payment_due_day': lease.payment_due_day,
        'late_fee_amount': lease.late_fee_amount,
        'late_fee_grace_days': lease.late_fee_grace_days,
        'lease_type': lease.lease_type,
        'currency': lease.currency,
        'pets_allowed': lease.pets_allowed,
        'smoking_allowed': lease.smoking_allowed,
        'subletting_allowed': lease.subletting_allowed,
    }
    updates = _parse_terms(params, current)
    updates['start_date'] = start_date
    updates['end_date'] = end_date
    if 'special_terms' in params:
        updates['special_terms'] = clean_text(params.get('special_terms'), 'special_terms')

    changed = sorted(field for field, value in updates.items() if getattr(lease, field) != value)
    for field in changed:
        setattr(lease, field, updates[field])

    AuditLog.log(
        action='lease-updated',
        user_id=user.id,
        resource_type='lease',
        resource_id=lease.id,
        details={'fields': changed}
    )
    logger.info(f'Draft lease {lease.id} updated: {", ".join(changed) or "no changes"}')
    return lease


@optimistic_transaction(on_integrity_error=_conflict_on_sign)
def sign(lease_id, user, signer_role, signature, now=None):
    """Capture one party's signature. Re-signing by the same party is a no-op."""
    now = now or datetime.utcnow()
    lease = get_or_raise(Lease, lease_id, 'Lease')
    role = parse_enum(signer_role, SignerRole, 'signer_role')

    if role == SignerRole.TENANT and user.id != lease.tenant_id:
        raise NotAuthorized('Only the lease tenant can sign as tenant')
    if role == SignerRole.LANDLORD and user.id != lease.landlord_id:
        raise NotAuthorized('Only the lease landlord can sign as landlord')

    already_signed = lease.tenant_signed_at if role == SignerRole.TENANT else lease.landlord_signed_at
    if already_signed is not None:
        return lease
    if not lease.is_signing():
        raise InvalidTransition(f'Lease cannot be signed while {lease.status}', current_status=lease.status)

    _record_signature(lease, role, signature, now)
    events.publish(events.lease_signed, lease, 'lease', actor_id=user.id, signer_role=role.value)

    status = lease.signature_status()
    if status == LeaseStatus.ACTIVE:
        _activate(lease, user.id, now)
    else:
        lease.status = status.value
    logger.info(f'Lease {lease.id} signed by {role.value}, now {lease.status}')
    return lease


@optimistic_transaction()
def terminate(lease_id, user, reason, termination_date, notes=None, now=None):
    """End an Active lease early; unresolved entries due after the date are cancelled."""
    now = now or datetime.utcnow()
    lease = get_or_raise(Lease, lease_id, 'Lease')
    _require_manager(lease, user)

    reason = parse_enum(reason, TerminationReason, 'reason')
    termination_date = parse_date(termination_date, 'termination_date')
    if lease.status != LeaseStatus.ACTIVE:
        raise InvalidTransition(f'Only Active leases can be terminated, lease is {lease.status}',
                                current_status=lease.status)
    if termination_date < lease.start_date:
        raise ValidationError('termination_date cannot be before the lease start', field='termination_date')

    lease.status = LeaseStatus.TERMINATED.value
    lease.termination_reason = reason.value
    lease.termination_date = termination_date
    lease.termination_notes = clean_text(notes, 'notes')

    cancelled = PaymentScheduleEntry.query.filter(
        PaymentScheduleEntry.lease_id == lease.id,
        PaymentScheduleEntry.due_date > termination_date,
        PaymentScheduleEntry.status.in_([s.value for s in PAYMENT_OPEN_STATUSES]),
    ).all()
    for entry in cancelled:
        entry.status = PaymentStatus.CANCELLED.value
        entry.cancelled_at = now

    events.publish(
        events.lease_terminated, lease, 'lease',
        actor_id=user.id,
        property_id=lease.property_id,
        reason=reason.value,
        termination_date=termination_date.isoformat(),
        cancelled_entry_ids=[entry.id for entry in cancelled],
    )
    logger.info(f'Lease {lease.id} terminated ({reason.value}), {len(cancelled)} entries cancelled')
    return lease


@optimistic_transaction()
def expire(lease_id, as_of):
    """Expire an Active lease whose end date is before ``as_of``.

    Returns True when the lease moved to Expired. Entries are left alone.
    """
    lease = get_or_raise(Lease, lease_id, 'Lease')
    if lease.status == LeaseStatus.EXPIRED:
        return False
    if lease.status != LeaseStatus.ACTIVE:
        raise InvalidTransition(f'Lease cannot expire from {lease.status}', current_status=lease.status)
    if not lease.end_date < as_of:
        return False

    lease.status = LeaseStatus.EXPIRED.value
    events.publish(events.lease_expired, lease, 'lease', property_id=lease.property_id, as_of=as_of.isoformat())
    logger.info(f'Lease {lease.id} expired as of {as_of}')
    return True


def expire_leases(as_of):
    """Sweep: expire every Active lease that ended before ``as_of``."""
    candidate_ids = [
        row.id for row in db.session.query(Lease.id).filter(
            Lease.status == LeaseStatus.ACTIVE.value,
            Lease.end_date < as_of,
        ).order_by(Lease.id)
    ]

    expired = 0
    for lease_id in candidate_ids:
        try:
            if expire(lease_id, as_of):
                expired += 1
        except (InvalidTransition, ConcurrencyConflict) as e:
            logger.warning(f'Skipping lease {lease_id} in expiry sweep: {e}')

    logger.info(f'Lease expiry sweep as of {as_of}: {expired}/{len(candidate_ids)} expired')
    return expired


@optimistic_transaction()
def renew(lease_id, user, params):
    """Draft the follow-on lease. The old one becomes Renewed when the new one activates."""
    lease = get_or_raise(Lease, lease_id, 'Lease')
    _require_manager(lease, user)

    if lease.status not in RENEWABLE_STATUSES:
        raise InvalidTransition(f'Only Active or Expired leases can be renewed, lease is {lease.status}',
                                current_status=lease.status)
    open_renewal = lease.renewals.filter(
        Lease.status.in_([s.value for s in LEASE_SIGNING_STATUSES])
    ).first()
    if open_renewal is not None:
        raise InvalidTransition(f'Lease already has renewal {open_renewal.id} awaiting signatures',
                                current_status=lease.status)

    start_date = parse_date(params.get('new_start_date'), 'new_start_date', required=False) or lease.end_date
    end_date = parse_date(params.get('new_end_date'), 'new_end_date')
    if end_date <= start_date:
        raise ValidationError('new_end_date must be after new_start_date', field='new_end_date')

    defaults = {
        'monthly_rent': lease.monthly_rent,
        'security_deposit': lease.security_deposit,
        'payment_due_day': lease.payment_due_day,
        'late_fee_amount': lease.late_fee_amount,
        'late_fee_grace_days': lease.late_fee_grace_days,
        'lease_type': lease.lease_type,
        'currency': lease.currency,
        'pets_allowed': lease.pets_allowed,
        'smoking_allowed': lease.smoking_allowed,
        'subletting_allowed': lease.subletting_allowed,
    }
    renamed = {
        'monthly_rent': params.get('new_monthly_rent'),
        'security_deposit': params.get('new_security_deposit'),
        'lease_type': params.get('new_lease_type'),
    }
    terms = _parse_terms({key: value for key, value in renamed.items() if value is not None}, defaults)

    active = find_active_lease(lease.property_id, exclude_ids=[lease.id])
    if active is not None:
        raise ConflictingActiveLease(lease.property_id, active_lease_id=active.id)

    renewal = Lease(
        application_id=lease.application_id,
        property_id=lease.property_id,
        tenant_id=lease.tenant_id,
        landlord_id=lease.landlord_id,
        previous_lease_id=lease.id,
        status=LeaseStatus.DRAFT.value,
        start_date=start_date,
        end_date=end_date,
        special_terms=clean_text(params.get('changes'), 'changes') or lease.special_terms,
        **terms
    )
    db.session.add(renewal)
    db.session.flush()

    AuditLog.log(
        action='lease-renewal-drafted',
        user_id=user.id,
        resource_type='lease',
        resource_id=lease.id,
        details={'renewal_lease_id': renewal.id, 'start_date': start_date.isoformat(),
                 'end_date': end_date.isoformat()}
    )
    logger.info(f'Lease {lease.id} renewal drafted as lease {renewal.id}')
    return renewal
