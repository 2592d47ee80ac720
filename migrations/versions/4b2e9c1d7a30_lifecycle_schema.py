"""lifecycle schema: applications, leases, payment schedule

Revision ID: 4b2e9c1d7a30
Revises: 
Create Date: 2026-10-19 09:12:44.118402

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4b2e9c1d7a30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table('properties',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=True),
        sa.Column('landlord_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['landlord_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_properties_city', 'properties', ['city'])
    op.create_index('ix_properties_status', 'properties', ['status'])
    op.create_index('ix_properties_landlord_id', 'properties', ['landlord_id'])

    op.create_table('rental_applications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('stage', sa.String(length=50), nullable=False),
        sa.Column('desired_move_in_date', sa.Date(), nullable=False),
        sa.Column('lease_term_months', sa.Integer(), nullable=False),
        sa.Column('number_of_occupants', sa.Integer(), nullable=False),
        sa.Column('monthly_income', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('employment_status', sa.String(length=50), nullable=True),
        sa.Column('employer_name', sa.String(length=255), nullable=True),
        sa.Column('employer_phone', sa.String(length=50), nullable=True),
        sa.Column('current_address', sa.String(length=500), nullable=True),
        sa.Column('reason_for_moving', sa.Text(), nullable=True),
        sa.Column('emergency_contact_name', sa.String(length=255), nullable=True),
        sa.Column('emergency_contact_phone', sa.String(length=50), nullable=True),
        sa.Column('has_pets', sa.Boolean(), nullable=True),
        sa.Column('pet_description', sa.Text(), nullable=True),
        sa.Column('references', sa.JSON(), nullable=True),
        sa.Column('documents', sa.JSON(), nullable=True),
        sa.Column('additional_notes', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('reviewed_by', sa.Integer(), nullable=True),
        sa.Column('review_comments', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id']),
        sa.ForeignKeyConstraint(['tenant_id'], ['users.id']),
        sa.ForeignKeyConstraint(['reviewed_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_rental_applications_property_id', 'rental_applications', ['property_id'])
    op.create_index('ix_rental_applications_tenant_id', 'rental_applications', ['tenant_id'])
    op.create_index('ix_rental_applications_status', 'rental_applications', ['status'])

    op.create_table('leases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('application_id', sa.Integer(), nullable=True),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('landlord_id', sa.Integer(), nullable=False),
        sa.Column('previous_lease_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('lease_type', sa.String(length=50), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('monthly_rent', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('security_deposit', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('payment_due_day', sa.Integer(), nullable=False),
        sa.Column('late_fee_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('late_fee_grace_days', sa.Integer(), nullable=False),
        sa.Column('pets_allowed', sa.Boolean(), nullable=True),
        sa.Column('smoking_allowed', sa.Boolean(), nullable=True),
        sa.Column('subletting_allowed', sa.Boolean(), nullable=True),
        sa.Column('special_terms', sa.Text(), nullable=True),
        sa.Column('tenant_signature', sa.Text(), nullable=True),
        sa.Column('tenant_signed_at', sa.DateTime(), nullable=True),
        sa.Column('landlord_signature', sa.Text(), nullable=True),
        sa.Column('landlord_signed_at', sa.DateTime(), nullable=True),
        sa.Column('activated_at', sa.DateTime(), nullable=True),
        sa.Column('schedule_generated_at', sa.DateTime(), nullable=True),
        sa.Column('termination_reason', sa.String(length=50), nullable=True),
        sa.Column('termination_date', sa.Date(), nullable=True),
        sa.Column('termination_notes', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['application_id'], ['rental_applications.id']),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id']),
        sa.ForeignKeyConstraint(['tenant_id'], ['users.id']),
        sa.ForeignKeyConstraint(['landlord_id'], ['users.id']),
        sa.ForeignKeyConstraint(['previous_lease_id'], ['leases.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_leases_application_id', 'leases', ['application_id'])
    op.create_index('ix_leases_property_id', 'leases', ['property_id'])
    op.create_index('ix_leases_tenant_id', 'leases', ['tenant_id'])
    op.create_index('ix_leases_landlord_id', 'leases', ['landlord_id'])
    op.create_index('ix_leases_previous_lease_id', 'leases', ['previous_lease_id'])
    op.create_index('ix_leases_status', 'leases', ['status'])
    op.create_index(
        'uq_leases_active_property', 'leases', ['property_id'], unique=True,
        postgresql_where=sa.text("status = 'Active'"),
        sqlite_where=sa.text("status = 'Active'"),
    )

    op.create_table('payment_schedule_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('lease_id', sa.Integer(), nullable=False),
        sa.Column('payment_type', sa.String(length=20), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('amount_paid', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('late_fee_for_id', sa.Integer(), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('waived_at', sa.DateTime(), nullable=True),
        sa.Column('waived_by', sa.Integer(), nullable=True),
        sa.Column('waiver_reason', sa.Text(), nullable=True),
        sa.Column('refunded_at', sa.DateTime(), nullable=True),
        sa.Column('refunded_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('refund_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['lease_id'], ['leases.id']),
        sa.ForeignKeyConstraint(['late_fee_for_id'], ['payment_schedule_entries.id']),
        sa.ForeignKeyConstraint(['waived_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('late_fee_for_id')
    )
    op.create_index('ix_payment_schedule_entries_lease_id', 'payment_schedule_entries', ['lease_id'])
    op.create_index('ix_payment_schedule_entries_due_date', 'payment_schedule_entries', ['due_date'])
    op.create_index('ix_payment_schedule_entries_status', 'payment_schedule_entries', ['status'])

    op.create_table('payment_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entry_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('method', sa.String(length=100), nullable=False),
        sa.Column('reference', sa.String(length=255), nullable=True),
        sa.Column('proof_url', sa.String(length=500), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('recorded_by', sa.Integer(), nullable=True),
        sa.Column('recorded_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['entry_id'], ['payment_schedule_entries.id']),
        sa.ForeignKeyConstraint(['recorded_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_payment_records_entry_id', 'payment_records', ['entry_id'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('resource_type', sa.String(length=50), nullable=True),
        sa.Column('resource_id', sa.Integer(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_resource_type', 'audit_logs', ['resource_type'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('payment_records')
    op.drop_table('payment_schedule_entries')
    op.drop_index('uq_leases_active_property', table_name='leases')
    op.drop_table('leases')
    op.drop_table('rental_applications')
    op.drop_table('properties')
    op.drop_table('users')
