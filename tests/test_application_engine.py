from datetime import date, timedelta

import pytest

from rentflow import db, events
from rentflow.errors import InvalidTransition, NotAuthorized, NotFound, ValidationError
from rentflow.models import AuditLog, RentalApplication
from rentflow.models.enums import ApplicationStatus, ApplicationStage, APPLICATION_DECIDED_STATUSES
from rentflow.services import application_engine

from conftest import NOW, application_payload


def assert_review_fields_match_status(application):
    decided = application.status in APPLICATION_DECIDED_STATUSES
    assert (application.reviewed_at is not None) == decided
    assert (application.reviewed_by is not None) == decided


def test_create_starts_in_draft(tenant, property):
    application = application_engine.create_application(tenant, application_payload(property.id), now=NOW)

    assert application.status == ApplicationStatus.DRAFT
    assert application.stage == ApplicationStage.INITIAL_SUBMISSION
    assert application.submitted_at is None
    assert application.references[0]['name'] == 'Peter Otieno'
    assert_review_fields_match_status(application)


def test_only_tenants_can_apply(landlord, property):
    with pytest.raises(NotAuthorized):
        application_engine.create_application(landlord, application_payload(property.id), now=NOW)


def test_unknown_property_is_not_found(tenant, property):
    with pytest.raises(NotFound):
        application_engine.create_application(tenant, application_payload(property.id + 100), now=NOW)


def test_submit_sets_submitted_at(tenant, property):
    application = application_engine.create_application(tenant, application_payload(property.id), now=NOW)
    application = application_engine.submit(application.id, tenant, now=NOW)

    assert application.status == ApplicationStatus.SUBMITTED
    assert application.submitted_at == NOW


@pytest.mark.parametrize('overrides, field', [
    ({'monthly_income': '0'}, 'monthly_income'),
    ({'desired_move_in_date': '2024-01-02'}, 'desired_move_in_date'),
    ({'emergency_contact_phone': ''}, 'emergency_contact_name'),
])
def test_submit_validates_content(tenant, property, overrides, field):
    application = application_engine.create_application(
        tenant, application_payload(property.id, **overrides), now=NOW
    )
    with pytest.raises(ValidationError) as exc:
        application_engine.submit(application.id, tenant, now=NOW)

    assert exc.value.field == field
    assert db.session.get(RentalApplication, application.id).status == ApplicationStatus.DRAFT


def test_lease_term_must_be_positive(tenant, property):
    with pytest.raises(ValidationError):
        application_engine.create_application(
            tenant, application_payload(property.id, lease_term_months=0), now=NOW
        )


def test_only_the_applicant_can_submit(tenant, other_tenant, property):
    application = application_engine.create_application(tenant, application_payload(property.id), now=NOW)
    with pytest.raises(NotAuthorized):
        application_engine.submit(application.id, other_tenant, now=NOW)


def test_begin_review_is_idempotent(submitted_application, landlord):
    first = application_engine.begin_review(submitted_application.id, landlord)
    version = first.version
    second = application_engine.begin_review(submitted_application.id, landlord)

    assert second.status == ApplicationStatus.UNDER_REVIEW
    assert second.stage == ApplicationStage.LANDLORD_REVIEW
    assert second.version == version


def test_begin_review_requires_submission(tenant, landlord, property):
    application = application_engine.create_application(tenant, application_payload(property.id), now=NOW)
    with pytest.raises(InvalidTransition):
        application_engine.begin_review(application.id, landlord)


def test_other_landlords_cannot_review(submitted_application, other_landlord, admin):
    with pytest.raises(NotAuthorized):
        application_engine.begin_review(submitted_application.id, other_landlord)

    application = application_engine.begin_review(submitted_application.id, admin)
    assert application.status == ApplicationStatus.UNDER_REVIEW


def test_approve_then_submit_fails(under_review_application, landlord, tenant):
    application = application_engine.decide(
        under_review_application.id, landlord, 'Approved', comments='ok', now=NOW
    )

    assert application.status == ApplicationStatus.APPROVED
    assert application.stage == ApplicationStage.FINAL_APPROVAL
    assert application.reviewed_at == NOW
    assert application.reviewed_by == landlord.id
    assert application.review_comments == 'ok'

    with pytest.raises(InvalidTransition):
        application_engine.submit(application.id, tenant, now=NOW)


def test_decide_requires_under_review(submitted_application, landlord):
    with pytest.raises(InvalidTransition):
        application_engine.decide(submitted_application.id, landlord, 'Rejected', now=NOW)


def test_decide_rejects_non_decision_status(under_review_application, landlord):
    with pytest.raises(ValidationError):
        application_engine.decide(under_review_application.id, landlord, 'Withdrawn', now=NOW)


def test_info_request_round_trip_keeps_first_submission(under_review_application, landlord, tenant):
    later = NOW + timedelta(days=3)
    application = application_engine.decide(
        under_review_application.id, landlord, 'AdditionalInfoRequested',
        comments='Please attach payslips', stage='DocumentVerification', now=NOW,
    )
    assert application.stage == ApplicationStage.DOCUMENT_VERIFICATION
    assert_review_fields_match_status(application)

    application = application_engine.update_application(
        application.id, tenant,
        {'documents': [{'document_type': 'payslip', 'document_url': 'https://files.example.com/p1.pdf'}]},
        now=later,
    )
    assert application.status == ApplicationStatus.ADDITIONAL_INFO_REQUESTED

    application = application_engine.submit(application.id, tenant, now=later)
    assert application.status == ApplicationStatus.SUBMITTED
    assert application.submitted_at == NOW
    assert application.documents[0]['document_url'] == 'https://files.example.com/p1.pdf'
    assert_review_fields_match_status(application)


def test_update_rejected_once_submitted(submitted_application, tenant):
    with pytest.raises(InvalidTransition):
        application_engine.update_application(submitted_application.id, tenant, {'has_pets': True}, now=NOW)


def test_withdraw_from_open_states(under_review_application, tenant, other_tenant):
    with pytest.raises(NotAuthorized):
        application_engine.withdraw(under_review_application.id, other_tenant)

    application = application_engine.withdraw(under_review_application.id, tenant)
    assert application.status == ApplicationStatus.WITHDRAWN

    with pytest.raises(InvalidTransition):
        application_engine.withdraw(application.id, tenant)


def test_draft_cannot_be_withdrawn(tenant, property):
    application = application_engine.create_application(tenant, application_payload(property.id), now=NOW)
    with pytest.raises(InvalidTransition):
        application_engine.withdraw(application.id, tenant)


def test_expiry_sweep(submitted_application, tenant, property):
    draft = application_engine.create_application(tenant, application_payload(property.id), now=NOW)

    assert application_engine.expire_applications(date(2024, 2, 1)) == 0
    assert application_engine.expire_applications(date(2024, 2, 2)) == 1
    assert application_engine.expire_applications(date(2024, 2, 2)) == 0

    assert db.session.get(RentalApplication, submitted_application.id).status == ApplicationStatus.EXPIRED
    assert db.session.get(RentalApplication, draft.id).status == ApplicationStatus.DRAFT


def test_expire_is_a_noop_for_expired(submitted_application):
    assert application_engine.expire(submitted_application.id, date(2024, 3, 1)) is True
    assert application_engine.expire(submitted_application.id, date(2024, 3, 2)) is False


def test_approving_one_leaves_the_others(tenant, other_tenant, landlord, property):
    first = application_engine.create_application(
        tenant, application_payload(property.id, submit_now=True), now=NOW
    )
    second = application_engine.create_application(
        other_tenant, application_payload(property.id, submit_now=True), now=NOW
    )
    application_engine.begin_review(first.id, landlord)
    application_engine.decide(first.id, landlord, 'Approved', now=NOW)

    assert db.session.get(RentalApplication, second.id).status == ApplicationStatus.SUBMITTED


def test_reviewed_at_tracks_decided_states(tenant, other_tenant, landlord, property):
    applications = []
    for applicant, decision in ((tenant, 'Approved'), (other_tenant, 'Rejected')):
        application = application_engine.create_application(
            applicant, application_payload(property.id, submit_now=True), now=NOW
        )
        application_engine.begin_review(application.id, landlord)
        application_engine.decide(application.id, landlord, decision, now=NOW)
        applications.append(application)

    withdrawn = application_engine.create_application(
        tenant, application_payload(property.id, submit_now=True), now=NOW
    )
    application_engine.begin_review(withdrawn.id, landlord)
    application_engine.decide(withdrawn.id, landlord, 'AdditionalInfoRequested', now=NOW)
    application_engine.withdraw(withdrawn.id, tenant)

    for application in RentalApplication.query.all():
        assert_review_fields_match_status(application)


def test_decisions_are_published(under_review_application, landlord):
    received = []

    def receiver(sender, **kwargs):
        received.append((sender.id, kwargs))

    with events.application_approved.connected_to(receiver):
        application_engine.decide(under_review_application.id, landlord, 'Approved', comments='ok', now=NOW)

    assert received[0][0] == under_review_application.id
    assert received[0][1]['actor_id'] == landlord.id

    actions = [log.action for log in AuditLog.query.filter_by(resource_id=under_review_application.id)]
    assert 'application-submitted' in actions
    assert 'application-approved' in actions


def test_failed_transition_leaves_no_audit_trail(tenant, property):
    application = application_engine.create_application(
        tenant, application_payload(property.id, monthly_income='0'), now=NOW
    )
    with pytest.raises(ValidationError):
        application_engine.submit(application.id, tenant, now=NOW)

    assert AuditLog.query.filter_by(action='application-submitted').count() == 0


def test_review_comments_keep_their_punctuation(under_review_application, landlord):
    application = application_engine.decide(
        under_review_application.id, landlord, 'Rejected',
        comments='income < 3x rent & no <i>references</i>', now=NOW,
    )

    db.session.expire_all()
    stored = db.session.get(RentalApplication, application.id)
    assert stored.review_comments == 'income < 3x rent & no references'
