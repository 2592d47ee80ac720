"""Application engine: a tenant's bid on a property, from draft to decision.

    Draft -> Submitted -> UnderReview -> Approved | Rejected | AdditionalInfoRequested
    AdditionalInfoRequested -> Submitted           (only through submit)
    Submitted | UnderReview | AdditionalInfoRequested -> Withdrawn | Expired

Approving one application never touches the others on the same property;
that call is left to the reviewer.
"""
import logging
from datetime import datetime

from rentflow import db, events
from rentflow.errors import InvalidTransition, NotAuthorized, ValidationError, ConcurrencyConflict
from rentflow.models import RentalApplication, Property
from rentflow.models.enums import (
    ApplicationStatus,
    ApplicationStage,
    EmploymentStatus,
    APPLICATION_DECIDED_STATUSES,
)
from rentflow.services.transactions import optimistic_transaction, get_or_raise
from rentflow.utils.money import to_money
from rentflow.utils.sanitizers import sanitize_documents, sanitize_references
from rentflow.utils.validators import (
    parse_bool,
    parse_date,
    parse_enum,
    parse_int,
    clean_text,
    validate_phone,
)

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = frozenset({
    ApplicationStatus.DRAFT,
    ApplicationStatus.ADDITIONAL_INFO_REQUESTED,
})

# Non-terminal states a submitted application can be withdrawn or expired from
OPEN_STATUSES = frozenset({
    ApplicationStatus.SUBMITTED,
    ApplicationStatus.UNDER_REVIEW,
    ApplicationStatus.ADDITIONAL_INFO_REQUESTED,
})

DECISION_EVENTS = {
    ApplicationStatus.APPROVED: events.application_approved,
    ApplicationStatus.REJECTED: events.application_rejected,
    ApplicationStatus.ADDITIONAL_INFO_REQUESTED: events.application_info_requested,
}


def can_view(application, user):
    if user.is_admin() or application.tenant_id == user.id:
        return True
    return user.is_landlord() and application.property.landlord_id == user.id


def visible_applications(user):
    """Query of applications ``user`` may read"""
    query = RentalApplication.query
    if user.is_admin():
        return query
    if user.is_landlord():
        return query.join(Property, RentalApplication.property_id == Property.id).filter(
            Property.landlord_id == user.id
        )
    return query.filter(RentalApplication.tenant_id == user.id)


def get_application(application_id, user):
    application = get_or_raise(RentalApplication, application_id, 'Application')
    if not can_view(application, user):
        raise NotAuthorized('You cannot view this application')
    return application


def _require_tenant_owner(application, user):
    if application.tenant_id != user.id:
        raise NotAuthorized('Only the applicant can change this application')


def _require_reviewer(application, user):
    if not user.can_manage_property(application.property):
        raise NotAuthorized('Only the property landlord or an admin can review this application')


def _apply_content(application, params, partial):
    """Copy tenant-editable fields from ``params`` onto ``application``"""
    def given(key):
        return not partial or key in params

    if given('desired_move_in_date'):
        application.desired_move_in_date = parse_date(params.get('desired_move_in_date'), 'desired_move_in_date')
    if given('lease_term_months'):
        application.lease_term_months = parse_int(params.get('lease_term_months'), 'lease_term_months', minimum=1)
    if given('number_of_occupants'):
        application.number_of_occupants = parse_int(
            params.get('number_of_occupants'), 'number_of_occupants', minimum=1, required=False, default=1
        )
    if given('monthly_income'):
        application.monthly_income = to_money(params.get('monthly_income', 0), 'monthly_income', allow_zero=True)
    if given('employment_status'):
        status = parse_enum(params.get('employment_status'), EmploymentStatus, 'employment_status', required=False)
        application.employment_status = status.value if status else None

    text_fields = {
        'employer_name': 255,
        'current_address': 500,
        'reason_for_moving': None,
        'emergency_contact_name': 255,
        'pet_description': None,
        'additional_notes': None,
    }
    for field, max_length in text_fields.items():
        if given(field):
            setattr(application, field, clean_text(params.get(field), field, max_length=max_length))

    for field in ('employer_phone', 'emergency_contact_phone'):
        if given(field):
            phone = clean_text(params.get(field), field, max_length=50)
            if phone and not validate_phone(phone):
                raise ValidationError(f'{field} is not a valid phone number', field=field)
            setattr(application, field, phone)

    if given('has_pets'):
        application.has_pets = parse_bool(params.get('has_pets'), 'has_pets')
    if given('references'):
        application.references = sanitize_references(params.get('references'))
    if given('documents'):
        application.documents = sanitize_documents(params.get('documents'))


def _submit(application, user, now):
    _require_tenant_owner(application, user)
    if application.status not in EDITABLE_STATUSES:
        raise InvalidTransition(
            f'Application cannot be submitted from {application.status}',
            current_status=application.status,
        )

    if application.monthly_income is None or application.monthly_income <= 0:
        raise ValidationError('monthly_income must be greater than zero', field='monthly_income')
    if application.desired_move_in_date is None or application.desired_move_in_date <= now.date():
        raise ValidationError('desired_move_in_date must be in the future', field='desired_move_in_date')
    if not application.lease_term_months or application.lease_term_months < 1:
        raise ValidationError('lease_term_months must be at least 1', field='lease_term_months')
    if not application.has_emergency_contact():
        raise ValidationError('An emergency contact name and phone are required', field='emergency_contact_name')

    resubmission = application.status == ApplicationStatus.ADDITIONAL_INFO_REQUESTED
    application.status = ApplicationStatus.SUBMITTED.value
    if application.submitted_at is None:
        application.submitted_at = now
    # The earlier decision no longer stands
    application.reviewed_at = None
    application.reviewed_by = None

    db.session.flush()
    events.publish(
        events.application_submitted, application, 'application',
        actor_id=user.id,
        property_id=application.property_id,
        resubmission=resubmission,
    )
    logger.info(f'Application {application.id} submitted (resubmission={resubmission})')


@optimistic_transaction()
def create_application(tenant, params, now=None):
    """Create a Draft application for ``tenant``; ``submit_now`` submits it too."""
    now = now or datetime.utcnow()
    if not tenant.is_tenant():
        raise NotAuthorized('Only tenants can apply for a property')

    property_id = parse_int(params.get('property_id'), 'property_id')
    get_or_raise(Property, property_id, 'Property')

    application = RentalApplication(
        property_id=property_id,
        tenant_id=tenant.id,
        status=ApplicationStatus.DRAFT.value,
        stage=ApplicationStage.INITIAL_SUBMISSION.value,
    )
    _apply_content(application, params, partial=False)
    db.session.add(application)
    db.session.flush()
    logger.info(f'Application {application.id} drafted by tenant {tenant.id} for property {property_id}')

    if parse_bool(params.get('submit_now'), 'submit_now'):
        _submit(application, tenant, now)
    return application


@optimistic_transaction()
def update_application(application_id, user, params, now=None):
    """Edit content while Draft or AdditionalInfoRequested."""
    now = now or datetime.utcnow()
    application = get_or_raise(RentalApplication, application_id, 'Application')
    _require_tenant_owner(application, user)
    if application.status not in EDITABLE_STATUSES:
        raise InvalidTransition(
            f'Application cannot be edited while {application.status}',
            current_status=application.status,
        )

    _apply_content(application, params, partial=True)
    if parse_bool(params.get('submit_now'), 'submit_now'):
        _submit(application, user, now)
    return application


@optimistic_transaction()
def submit(application_id, user, now=None):
    now = now or datetime.utcnow()
    application = get_or_raise(RentalApplication, application_id, 'Application')
    _submit(application, user, now)
    return application


@optimistic_transaction()
def begin_review(application_id, reviewer, stage=None):
    """Submitted -> UnderReview. Already under review is a no-op."""
    application = get_or_raise(RentalApplication, application_id, 'Application')
    _require_reviewer(application, reviewer)

    if application.status == ApplicationStatus.UNDER_REVIEW:
        return application
    if application.status != ApplicationStatus.SUBMITTED:
        raise InvalidTransition(
            f'Review cannot start from {application.status}',
            current_status=application.status,
        )

    stage = parse_enum(stage, ApplicationStage, 'stage', required=False, default=ApplicationStage.LANDLORD_REVIEW)
    application.status = ApplicationStatus.UNDER_REVIEW.value
    application.stage = stage.value
    logger.info(f'Application {application.id} under review by user {reviewer.id}')
    return application


@optimistic_transaction()
def decide(application_id, reviewer, decision, comments=None, stage=None, now=None):
    now = now or datetime.utcnow()
    application = get_or_raise(RentalApplication, application_id, 'Application')
    _require_reviewer(application, reviewer)

    decision = parse_enum(decision, ApplicationStatus, 'status')
    if decision not in APPLICATION_DECIDED_STATUSES:
        raise ValidationError('status must be Approved, Rejected or AdditionalInfoRequested', field='status')
    if application.status != ApplicationStatus.UNDER_REVIEW:
        raise InvalidTransition(
            f'A decision requires UnderReview, application is {application.status}',
            current_status=application.status,
        )

    if decision == ApplicationStatus.APPROVED:
        stage = ApplicationStage.FINAL_APPROVAL
    else:
        stage = parse_enum(stage, ApplicationStage, 'stage', required=False)

    application.status = decision.value
    if stage:
        application.stage = stage.value
    application.reviewed_at = now
    application.reviewed_by = reviewer.id
    application.review_comments = clean_text(comments, 'comments')

    events.publish(
        DECISION_EVENTS[decision], application, 'application',
        actor_id=reviewer.id,
        property_id=application.property_id,
        tenant_id=application.tenant_id,
        comments=application.review_comments,
    )
    logger.info(f'Application {application.id} decided {decision.value} by user {reviewer.id}')
    return application


@optimistic_transaction()
def withdraw(application_id, user):
    application = get_or_raise(RentalApplication, application_id, 'Application')
    _require_tenant_owner(application, user)
    if application.status not in OPEN_STATUSES:
        raise InvalidTransition(
            f'Application cannot be withdrawn from {application.status}',
            current_status=application.status,
        )

    application.status = ApplicationStatus.WITHDRAWN.value
    application.reviewed_at = None
    application.reviewed_by = None

    events.publish(
        events.application_withdrawn, application, 'application',
        actor_id=user.id,
        property_id=application.property_id,
    )
    logger.info(f'Application {application.id} withdrawn by tenant {user.id}')
    return application


@optimistic_transaction()
def expire(application_id, as_of):
    """Expire an open application whose move-in date has passed.

    Returns True when the application moved to Expired, False when there
    was nothing to do (already expired, or the date has not passed yet).
    """
    application = get_or_raise(RentalApplication, application_id, 'Application')
    if application.status == ApplicationStatus.EXPIRED:
        return False
    if application.status not in OPEN_STATUSES:
        raise InvalidTransition(
            f'Application cannot expire from {application.status}',
            current_status=application.status,
        )
    if not application.desired_move_in_date < as_of:
        return False

    application.status = ApplicationStatus.EXPIRED.value
    application.reviewed_at = None
    application.reviewed_by = None

    events.publish(
        events.application_expired, application, 'application',
        property_id=application.property_id,
        as_of=as_of.isoformat(),
    )
    logger.info(f'Application {application.id} expired as of {as_of}')
    return True


def expire_applications(as_of):
    """Sweep: expire every open application whose move-in date is before ``as_of``."""
    candidate_ids = [
        row.id for row in db.session.query(RentalApplication.id).filter(
            RentalApplication.status.in_([s.value for s in OPEN_STATUSES]),
            RentalApplication.desired_move_in_date < as_of,
        ).order_by(RentalApplication.id)
    ]

    expired = 0
    for application_id in candidate_ids:
        try:
            if expire(application_id, as_of):
                expired += 1
        except (InvalidTransition, ConcurrencyConflict) as e:
            logger.warning(f'Skipping application {application_id} in expiry sweep: {e}')

    logger.info(f'Application expiry sweep as of {as_of}: {expired}/{len(candidate_ids)} expired')
    return expired
