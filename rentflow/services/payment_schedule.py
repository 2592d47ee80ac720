"""Payment schedule engine: the obligations an Active lease generates.

Entry status is derived from the money on the entry:

    amount_paid >= amount      -> Paid
    0 < amount_paid < amount   -> PartiallyPaid
    nothing paid               -> Pending

The overdue sweep marks unpaid entries past their grace period as Overdue.
Waived, Refunded and Cancelled are set by hand and win over anything
derived. Entries are never deleted.
"""
import logging
from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from rentflow import db, events
from rentflow.errors import (
    ConcurrencyConflict,
    InvalidState,
    InvalidTransition,
    NotAuthorized,
    ValidationError,
)
from rentflow.models import Lease, PaymentRecord, PaymentScheduleEntry
from rentflow.models.audit_log import AuditLog
from rentflow.models.enums import (
    LeaseStatus,
    PaymentStatus,
    PaymentType,
    PAYMENT_MANUAL_STATUSES,
    PAYMENT_OPEN_STATUSES,
)
from rentflow.services.transactions import optimistic_transaction, get_or_raise
from rentflow.utils.money import money_str, to_money
from rentflow.utils.validators import clean_identifier, clean_text, parse_date, parse_enum

logger = logging.getLogger(__name__)

# Statuses the overdue sweep looks at
SWEEPABLE_STATUSES = frozenset({PaymentStatus.PENDING, PaymentStatus.PARTIALLY_PAID})

# Statuses whose due date and amount can still be edited
EDITABLE_STATUSES = frozenset({PaymentStatus.PENDING, PaymentStatus.PARTIALLY_PAID})


def derive_status(amount, amount_paid, overdue=False, manual=None):
    """Status of an entry from its money, its lateness and any manual override."""
    if manual is not None:
        manual = PaymentStatus(manual)
        if manual not in PAYMENT_MANUAL_STATUSES:
            raise ValueError(f'{manual.value} is not a manual status')
        return manual
    if amount_paid >= amount:
        return PaymentStatus.PAID
    if overdue:
        return PaymentStatus.OVERDUE
    if amount_paid > 0:
        return PaymentStatus.PARTIALLY_PAID
    return PaymentStatus.PENDING


def rent_due_dates(start_date, end_date, due_day):
    """Due dates of the monthly rent between ``start_date`` and ``end_date``.

    One per calendar month, on ``due_day`` clamped to the month's last day,
    counting only dates inside ``[start_date, end_date)``.
    """
    month = start_date.replace(day=1)
    dates = []
    while month <= end_date:
        due = month + relativedelta(day=due_day)
        if start_date <= due < end_date:
            dates.append(due)
        month += relativedelta(months=1)
    return dates


def is_past_grace(due_date, grace_days, as_of):
    """True once the last full day before ``as_of`` is beyond the grace period"""
    return due_date + timedelta(days=grace_days) < as_of - timedelta(days=1)


def can_view(entry, user):
    lease = entry.lease
    return user.is_admin() or user.id in (lease.tenant_id, lease.landlord_id)


def visible_entries(user):
    """Query of schedule entries ``user`` may read"""
    query = PaymentScheduleEntry.query.join(Lease, PaymentScheduleEntry.lease_id == Lease.id)
    if user.is_admin():
        return query
    if user.is_landlord():
        return query.filter(Lease.landlord_id == user.id)
    return query.filter(Lease.tenant_id == user.id)


def get_entry(entry_id, user):
    entry = get_or_raise(PaymentScheduleEntry, entry_id, 'Payment')
    if not can_view(entry, user):
        raise NotAuthorized('You cannot view this payment')
    return entry


def lease_schedule(lease):
    return lease.payment_entries.order_by(PaymentScheduleEntry.due_date, PaymentScheduleEntry.id).all()


def _require_manager(lease, user):
    if not (user.is_admin() or user.id == lease.landlord_id):
        raise NotAuthorized('Only the lease landlord or an admin can manage payments')


def generate_schedule(lease, now=None):
    """Create the Deposit and Rent entries for a freshly Active lease.

    A lease that already has its schedule gets nothing new; the return
    value is the list of entries created by this call.
    """
    if lease.schedule_generated_at is not None:
        logger.info(f'Lease {lease.id} already has a schedule, skipping generation')
        return []
    if not lease.is_active():
        raise InvalidState(f'Schedules are generated for Active leases, lease {lease.id} is {lease.status}',
                           current_status=lease.status)

    entries = []
    if lease.security_deposit and lease.security_deposit > 0:
        entries.append(PaymentScheduleEntry(
            lease_id=lease.id,
            payment_type=PaymentType.DEPOSIT.value,
            due_date=lease.start_date,
            amount=lease.security_deposit,
            amount_paid=0,
            status=PaymentStatus.PENDING.value,
            description='Security deposit',
        ))

    for due_date in rent_due_dates(lease.start_date, lease.end_date, lease.payment_due_day):
        entries.append(PaymentScheduleEntry(
            lease_id=lease.id,
            payment_type=PaymentType.RENT.value,
            due_date=due_date,
            amount=lease.monthly_rent,
            amount_paid=0,
            status=PaymentStatus.PENDING.value,
            description=f'Rent for {due_date:%B %Y}',
        ))

    db.session.add_all(entries)
    lease.schedule_generated_at = now or datetime.utcnow()
    db.session.flush()
    logger.info(f'Generated {len(entries)} schedule entries for lease {lease.id}')
    return entries


@events.lease_activated.connect
def generate_on_activation(lease, **extra):
    generate_schedule(lease)


@optimistic_transaction()
def record_payment(entry_id, user, amount, method, reference=None, proof_url=None, notes=None, now=None):
    """Apply a settlement to an entry. Overpayment is kept and resolves to Paid."""
    now = now or datetime.utcnow()
    entry = get_or_raise(PaymentScheduleEntry, entry_id, 'Payment')
    _require_manager(entry.lease, user)

    if entry.is_manual() or entry.status == PaymentStatus.PAID:
        raise InvalidState(f'Cannot record a payment against a {entry.status} entry', current_status=entry.status)

    amount = to_money(amount, 'amount')
    method = clean_identifier(method, 'method', required=True, max_length=100)
    reference = clean_identifier(reference, 'reference', max_length=255)

    entry.paid_history.append(PaymentRecord(
        amount=amount,
        method=method,
        reference=reference,
        proof_url=clean_identifier(proof_url, 'proof_url', max_length=500),
        notes=clean_text(notes, 'notes'),
        recorded_by=user.id,
        recorded_at=now,
    ))
    entry.amount_paid = entry.amount_paid + amount
    status = derive_status(entry.amount, entry.amount_paid)
    entry.status = status.value
    if status == PaymentStatus.PAID:
        entry.paid_at = now

    events.publish(
        events.payment_recorded, entry, 'payment',
        actor_id=user.id,
        lease_id=entry.lease_id,
        amount=money_str(amount),
        method=method,
        reference=reference,
        status=entry.status,
    )
    logger.info(f'Payment of {amount} recorded on entry {entry.id}, now {entry.status}')
    return entry


@optimistic_transaction()
def waive_payment(entry_id, user, reason, now=None):
    """Forgive what is left on an entry. Recorded partial payments stay."""
    now = now or datetime.utcnow()
    entry = get_or_raise(PaymentScheduleEntry, entry_id, 'Payment')
    _require_manager(entry.lease, user)

    if entry.status not in PAYMENT_OPEN_STATUSES:
        raise InvalidState(f'A {entry.status} entry cannot be waived', current_status=entry.status)
    reason = clean_text(reason, 'reason', required=True)

    entry.status = derive_status(entry.amount, entry.amount_paid, manual=PaymentStatus.WAIVED).value
    entry.waiver_reason = reason
    entry.waived_at = now
    entry.waived_by = user.id

    events.publish(
        events.payment_waived, entry, 'payment',
        actor_id=user.id,
        lease_id=entry.lease_id,
        reason=reason,
        outstanding=money_str(entry.balance()),
    )
    logger.info(f'Entry {entry.id} waived by user {user.id}')
    return entry


@optimistic_transaction()
def refund_payment(entry_id, user, amount, reference=None, reason=None, method='refund', now=None):
    """Hand back part or all of what was paid on an entry."""
    now = now or datetime.utcnow()
    entry = get_or_raise(PaymentScheduleEntry, entry_id, 'Payment')
    _require_manager(entry.lease, user)

    if entry.status in (PaymentStatus.REFUNDED, PaymentStatus.CANCELLED):
        raise InvalidState(f'A {entry.status} entry cannot be refunded', current_status=entry.status)

    amount = to_money(amount, 'amount')
    if amount > entry.amount_paid:
        raise ValidationError(f'Refund cannot exceed the {money_str(entry.amount_paid)} paid', field='amount')
    method = clean_identifier(method, 'method', max_length=100) or 'refund'
    reference = clean_identifier(reference, 'reference', max_length=255)
    reason = clean_text(reason, 'reason')

    entry.paid_history.append(PaymentRecord(
        amount=-amount,
        method=method,
        reference=reference,
        notes=reason,
        recorded_by=user.id,
        recorded_at=now,
    ))
    entry.amount_paid = entry.amount_paid - amount
    entry.status = PaymentStatus.REFUNDED.value
    entry.refunded_at = now
    entry.refunded_amount = amount
    entry.refund_reason = reason

    events.publish(
        events.payment_refunded, entry, 'payment',
        actor_id=user.id,
        lease_id=entry.lease_id,
        amount=money_str(amount),
        reference=reference,
        reason=reason,
    )
    logger.info(f'Refunded {amount} on entry {entry.id}')
    return entry


@optimistic_transaction()
def add_entry(lease_id, user, params):
    """Add a one-off obligation (late fee, extra deposit, other) to an Active lease."""
    lease = get_or_raise(Lease, lease_id, 'Lease')
    _require_manager(lease, user)

    if lease.status != LeaseStatus.ACTIVE:
        raise InvalidTransition(f'Entries can only be added to Active leases, lease is {lease.status}',
                                current_status=lease.status)

    payment_type = parse_enum(params.get('payment_type'), PaymentType, 'payment_type')
    if payment_type == PaymentType.RENT:
        raise ValidationError('Rent entries come from the lease schedule', field='payment_type')

    entry = PaymentScheduleEntry(
        lease_id=lease.id,
        payment_type=payment_type.value,
        due_date=parse_date(params.get('due_date'), 'due_date'),
        amount=to_money(params.get('amount'), 'amount'),
        amount_paid=0,
        status=PaymentStatus.PENDING.value,
        description=clean_text(params.get('description'), 'description'),
        notes=clean_text(params.get('notes'), 'notes'),
    )
    db.session.add(entry)
    db.session.flush()

    AuditLog.log(
        action='payment-entry-added',
        user_id=user.id,
        resource_type='payment',
        resource_id=entry.id,
        details={'lease_id': lease.id, 'payment_type': entry.payment_type,
                 'amount': money_str(entry.amount), 'due_date': entry.due_date.isoformat()}
    )
    logger.info(f'{entry.payment_type} entry {entry.id} added to lease {lease.id}')
    return entry


@optimistic_transaction()
def update_entry(entry_id, user, params, now=None):
    """Correct the due date, amount, description or notes of an unsettled entry."""
    now = now or datetime.utcnow()
    entry = get_or_raise(PaymentScheduleEntry, entry_id, 'Payment')
    _require_manager(entry.lease, user)

    if entry.status not in EDITABLE_STATUSES:
        raise InvalidState(f'A {entry.status} entry cannot be edited', current_status=entry.status)

    changes = {}
    if params.get('due_date') is not None:
        due_date = parse_date(params.get('due_date'), 'due_date')
        if due_date != entry.due_date:
            changes['due_date'] = [entry.due_date.isoformat(), due_date.isoformat()]
            entry.due_date = due_date
    if params.get('amount') is not None:
        amount = to_money(params.get('amount'), 'amount')
        if amount < entry.amount_paid:
            raise ValidationError(f'amount cannot be below the {money_str(entry.amount_paid)} already paid',
                                  field='amount')
        if amount != entry.amount:
            changes['amount'] = [money_str(entry.amount), money_str(amount)]
            entry.amount = amount
    for field in ('description', 'notes'):
        if field in params:
            text = clean_text(params.get(field), field)
            if text != getattr(entry, field):
                changes[field] = [getattr(entry, field), text]
                setattr(entry, field, text)

    status = derive_status(entry.amount, entry.amount_paid)
    if status.value != entry.status:
        entry.status = status.value
        if status == PaymentStatus.PAID:
            entry.paid_at = now
        changes['status'] = status.value

    AuditLog.log(
        action='payment-entry-updated',
        user_id=user.id,
        resource_type='payment',
        resource_id=entry.id,
        details={'lease_id': entry.lease_id, 'changes': changes}
    )
    logger.info(f'Entry {entry.id} updated: {", ".join(changes) or "no changes"}')
    return entry


def _accrue_late_fee(entry, lease, as_of):
    if entry.payment_type != PaymentType.RENT or lease.status != LeaseStatus.ACTIVE:
        return None
    if not lease.late_fee_amount or lease.late_fee_amount <= 0 or entry.late_fee is not None:
        return None

    fee = PaymentScheduleEntry(
        lease_id=lease.id,
        payment_type=PaymentType.LATE_FEE.value,
        due_date=as_of,
        amount=lease.late_fee_amount,
        amount_paid=0,
        status=PaymentStatus.PENDING.value,
        description=f'Late fee for {entry.description or "rent due " + entry.due_date.isoformat()}',
        late_fee_for=entry,
    )
    db.session.add(fee)
    db.session.flush()
    return fee


def _late_fee_race(error, *args, **kwargs):
    return ConcurrencyConflict('Another sweep accrued this late fee first')


@optimistic_transaction(on_integrity_error=_late_fee_race)
def mark_overdue(entry_id, as_of):
    """Flag one entry Overdue if its grace period has lapsed by ``as_of``."""
    entry = get_or_raise(PaymentScheduleEntry, entry_id, 'Payment')
    if entry.status not in SWEEPABLE_STATUSES:
        return False
    lease = entry.lease
    if not is_past_grace(entry.due_date, lease.late_fee_grace_days or 0, as_of):
        return False

    entry.status = derive_status(entry.amount, entry.amount_paid, overdue=True).value
    if entry.status != PaymentStatus.OVERDUE:
        return False

    fee = _accrue_late_fee(entry, lease, as_of)
    events.publish(
        events.payment_overdue, entry, 'payment',
        lease_id=lease.id,
        tenant_id=lease.tenant_id,
        due_date=entry.due_date.isoformat(),
        outstanding=money_str(entry.balance()),
        late_fee_entry_id=fee.id if fee is not None else None,
        as_of=as_of.isoformat(),
    )
    logger.info(f'Entry {entry.id} overdue as of {as_of}')
    return True


def sweep_overdue(as_of):
    """Sweep: flag every unpaid entry past its grace period as Overdue."""
    candidate_ids = [
        row.id for row in db.session.query(PaymentScheduleEntry.id).filter(
            PaymentScheduleEntry.status.in_([s.value for s in SWEEPABLE_STATUSES]),
            PaymentScheduleEntry.due_date < as_of,
        ).order_by(PaymentScheduleEntry.due_date, PaymentScheduleEntry.id)
    ]

    flagged = 0
    for entry_id in candidate_ids:
        try:
            if mark_overdue(entry_id, as_of):
                flagged += 1
        except (InvalidTransition, ConcurrencyConflict) as e:
            logger.warning(f'Skipping entry {entry_id} in overdue sweep: {e}')

    logger.info(f'Overdue sweep as of {as_of}: {flagged}/{len(candidate_ids)} flagged')
    return flagged
