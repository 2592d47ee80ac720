"""Domain events raised by the lifecycle engines.

Each event is written to the audit log inside the caller's transaction and
then broadcast on a blinker signal. Receivers run synchronously, so anything
they write commits or rolls back together with the transition that fired it.
"""
import logging
from blinker import Namespace

from rentflow.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

_signals = Namespace()

application_submitted = _signals.signal('application-submitted')
application_approved = _signals.signal('application-approved')
application_rejected = _signals.signal('application-rejected')
application_info_requested = _signals.signal('application-info-requested')
application_withdrawn = _signals.signal('application-withdrawn')
application_expired = _signals.signal('application-expired')

lease_signed = _signals.signal('lease-signed')
lease_activated = _signals.signal('lease-activated')
lease_terminated = _signals.signal('lease-terminated')
lease_expired = _signals.signal('lease-expired')
lease_renewed = _signals.signal('lease-renewed')

payment_recorded = _signals.signal('payment-recorded')
payment_overdue = _signals.signal('payment-overdue')
payment_waived = _signals.signal('payment-waived')
payment_refunded = _signals.signal('payment-refunded')

# Events the notification dispatcher cares about
NOTIFIABLE = frozenset({
    application_approved.name,
    application_rejected.name,
    application_info_requested.name,
    lease_activated.name,
    lease_terminated.name,
    payment_overdue.name,
})


def publish(signal, sender, resource_type, actor_id=None, **details):
    """Record ``signal`` for ``sender`` and notify its receivers."""
    AuditLog.log(
        action=signal.name,
        user_id=actor_id,
        resource_type=resource_type,
        resource_id=sender.id,
        details=details,
    )
    if signal.name in NOTIFIABLE:
        logger.info(f'Notification due: {signal.name} for {resource_type} {sender.id}')
    else:
        logger.debug(f'Publishing {signal.name} for {resource_type} {sender.id}')
    signal.send(sender, actor_id=actor_id, **details)
