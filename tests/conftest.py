from datetime import datetime

import pytest
from flask_jwt_extended import create_access_token

from rentflow import create_app, db
from rentflow.models import User, Property
from rentflow.services import application_engine, lease_engine

NOW = datetime(2024, 1, 2, 9, 30)

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite://',
    'SQLALCHEMY_ENGINE_OPTIONS': {},
    'RATELIMIT_ENABLED': False,
    'JWT_SECRET_KEY': 'rentflow-test-secret-key-0123456789abcdef',
}


def make_user(email, name, role):
    user = User(email=email, name=name, role=role, phone='+254700000000')
    db.session.add(user)
    db.session.commit()
    return user


def application_payload(property_id, **overrides):
    data = {
        'property_id': property_id,
        'desired_move_in_date': '2024-02-01',
        'lease_term_months': 12,
        'number_of_occupants': 2,
        'monthly_income': '85000.00',
        'employment_status': 'Employed',
        'employer_name': 'Acme Ltd',
        'current_address': '12 Ngong Road, Nairobi',
        'emergency_contact_name': 'Jane Wanjiru',
        'emergency_contact_phone': '+254711000111',
        'references': [{'name': 'Peter Otieno', 'relationship': 'Former landlord', 'phone': '+254722000222'}],
    }
    data.update(overrides)
    return data


def lease_payload(property_id, tenant_id, **overrides):
    data = {
        'property_id': property_id,
        'tenant_id': tenant_id,
        'start_date': '2024-01-15',
        'end_date': '2024-04-15',
        'monthly_rent': '5000',
        'security_deposit': '10000',
        'payment_due_day': 1,
    }
    data.update(overrides)
    return data


@pytest.fixture
def app():
    app = create_app(TEST_CONFIG)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def landlord(app):
    return make_user('landlord@example.com', 'Grace Landlord', 'landlord')


@pytest.fixture
def other_landlord(app):
    return make_user('other.landlord@example.com', 'Otto Landlord', 'landlord')


@pytest.fixture
def tenant(app):
    return make_user('tenant@example.com', 'Tom Tenant', 'tenant')


@pytest.fixture
def other_tenant(app):
    return make_user('other.tenant@example.com', 'Tina Tenant', 'tenant')


@pytest.fixture
def admin(app):
    return make_user('admin@example.com', 'Ada Admin', 'admin')


@pytest.fixture
def property(app, landlord):
    listing = Property(title='2BR Apartment, Kilimani', city='Nairobi',
                       address='Argwings Kodhek Rd', landlord_id=landlord.id)
    db.session.add(listing)
    db.session.commit()
    return listing


@pytest.fixture
def auth_header():
    def _header(user):
        return {'Authorization': f'Bearer {create_access_token(identity=str(user.id))}'}
    return _header


@pytest.fixture
def submitted_application(tenant, property):
    return application_engine.create_application(
        tenant, application_payload(property.id, submit_now=True), now=NOW
    )


@pytest.fixture
def under_review_application(submitted_application, landlord):
    return application_engine.begin_review(submitted_application.id, landlord)


@pytest.fixture
def draft_lease(landlord, tenant, property):
    return lease_engine.create_lease(landlord, lease_payload(property.id, tenant.id), now=NOW)


@pytest.fixture
def make_active_lease(landlord, tenant, property):
    def _make(**overrides):
        lease = lease_engine.create_lease(landlord, lease_payload(property.id, tenant.id, **overrides), now=NOW)
        lease_engine.sign(lease.id, tenant, 'tenant', 'https://docs.example.com/sig/tenant.png', now=NOW)
        return lease_engine.sign(lease.id, landlord, 'landlord', 'https://docs.example.com/sig/landlord.png', now=NOW)
    return _make


@pytest.fixture
def active_lease(make_active_lease):
    return make_active_lease()
