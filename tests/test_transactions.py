import pytest
from sqlalchemy import text
from sqlalchemy.orm.exc import StaleDataError

from rentflow import create_app, db
from rentflow.errors import ConcurrencyConflict, NotFound, ValidationError
from rentflow.models import Property, RentalApplication
from rentflow.models.enums import ApplicationStatus
from rentflow.services import application_engine
from rentflow.services.transactions import optimistic_transaction, get_or_raise

from conftest import NOW, TEST_CONFIG, application_payload, make_user


def test_stale_writes_are_retried(app):
    calls = []

    @optimistic_transaction()
    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise StaleDataError('row changed underneath us')
        return 'done'

    assert flaky() == 'done'
    assert len(calls) == 3


def test_retry_bound_surfaces_conflict(app):
    app.config['CONCURRENCY_MAX_ATTEMPTS'] = 2
    calls = []

    @optimistic_transaction()
    def always_stale():
        calls.append(1)
        raise StaleDataError('row changed underneath us')

    with pytest.raises(ConcurrencyConflict) as exc:
        always_stale()
    assert len(calls) == 2
    assert exc.value.to_dict()['retryable'] is True


def test_domain_errors_are_not_retried(app):
    calls = []

    @optimistic_transaction()
    def invalid():
        calls.append(1)
        raise ValidationError('bad input', field='amount')

    with pytest.raises(ValidationError):
        invalid()
    assert len(calls) == 1


def test_get_or_raise(app):
    with pytest.raises(NotFound):
        get_or_raise(RentalApplication, 999, 'Application')


@pytest.fixture
def file_app(tmp_path):
    # Two real connections are needed to interleave writers
    config = dict(TEST_CONFIG, SQLALCHEMY_DATABASE_URI=f'sqlite:///{tmp_path / "race.db"}')
    app = create_app(config)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


def _seed_under_review():
    landlord = make_user('landlord@example.com', 'Grace Landlord', 'landlord')
    tenant = make_user('tenant@example.com', 'Tom Tenant', 'tenant')
    listing = Property(title='Bedsitter, Rongai', landlord_id=landlord.id)
    db.session.add(listing)
    db.session.commit()

    application = application_engine.create_application(
        tenant, application_payload(listing.id, submit_now=True), now=NOW
    )
    application_engine.begin_review(application.id, landlord)
    return landlord, application


def _racing_loader(monkeypatch, rounds):
    original = application_engine.get_or_raise
    loads = []

    def load_then_collide(model, entity_id, label=None):
        entity = original(model, entity_id, label)
        loads.append(entity_id)
        if len(loads) <= rounds:
            # Another writer commits between our read and our write
            with db.engine.begin() as conn:
                conn.execute(
                    text('UPDATE rental_applications SET version = version + 1 WHERE id = :id'),
                    {'id': entity_id},
                )
        return entity

    monkeypatch.setattr(application_engine, 'get_or_raise', load_then_collide)
    return loads


def test_collision_is_retried_against_fresh_state(file_app, monkeypatch):
    landlord, application = _seed_under_review()
    loads = _racing_loader(monkeypatch, rounds=1)

    application = application_engine.decide(application.id, landlord, 'Approved', now=NOW)

    assert len(loads) == 2
    assert application.status == ApplicationStatus.APPROVED


def test_persistent_collision_raises(file_app, monkeypatch):
    landlord, application = _seed_under_review()
    loads = _racing_loader(monkeypatch, rounds=10)

    with pytest.raises(ConcurrencyConflict):
        application_engine.decide(application.id, landlord, 'Approved', now=NOW)

    assert len(loads) == file_app.config['CONCURRENCY_MAX_ATTEMPTS']
    db.session.expire_all()
    assert db.session.get(RentalApplication, application.id).status == ApplicationStatus.UNDER_REVIEW
