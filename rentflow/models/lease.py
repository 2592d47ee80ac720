from rentflow import db
from rentflow.models.enums import LeaseStatus, LeaseType, LEASE_SIGNING_STATUSES
from rentflow.utils.money import money_str
from datetime import datetime

class Lease(db.Model):
    """A binding contract over one property between one landlord and one tenant."""
    __tablename__ = 'leases'

    id = db.Column(db.Integer, primary_key=True)
    application_id = db.Column(db.Integer, db.ForeignKey('rental_applications.id'), nullable=True, index=True)
    property_id = db.Column(db.Integer, db.ForeignKey('properties.id'), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    landlord_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    previous_lease_id = db.Column(db.Integer, db.ForeignKey('leases.id'), nullable=True, index=True)

    status = db.Column(db.String(50), nullable=False, default=LeaseStatus.DRAFT.value, index=True)
    lease_type = db.Column(db.String(50), nullable=False, default=LeaseType.FIXED.value)

    # Term
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    # Money
    currency = db.Column(db.String(3), nullable=False, default='KES')
    monthly_rent = db.Column(db.Numeric(12, 2), nullable=False)
    security_deposit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    payment_due_day = db.Column(db.Integer, nullable=False, default=1)
    late_fee_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    late_fee_grace_days = db.Column(db.Integer, nullable=False, default=0)

    # House rules
    pets_allowed = db.Column(db.Boolean, default=False)
    smoking_allowed = db.Column(db.Boolean, default=False)
    subletting_allowed = db.Column(db.Boolean, default=False)
    special_terms = db.Column(db.Text, nullable=True)

    # Signatures (blobs are opaque references into document storage)
    tenant_signature = db.Column(db.Text, nullable=True)
    tenant_signed_at = db.Column(db.DateTime, nullable=True)
    landlord_signature = db.Column(db.Text, nullable=True)
    landlord_signed_at = db.Column(db.DateTime, nullable=True)
    activated_at = db.Column(db.DateTime, nullable=True)
    schedule_generated_at = db.Column(db.DateTime, nullable=True)

    # Termination
    termination_reason = db.Column(db.String(50), nullable=True)
    termination_date = db.Column(db.Date, nullable=True)
    termination_notes = db.Column(db.Text, nullable=True)

    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {'version_id_col': version}

    __table_args__ = (
        # Backstop for racing activations: one Active lease per property
        db.Index(
            'uq_leases_active_property',
            'property_id',
            unique=True,
            postgresql_where=db.text("status = 'Active'"),
            sqlite_where=db.text("status = 'Active'"),
        ),
    )

    # Relationships
    property = db.relationship('Property', backref=db.backref('leases', lazy='dynamic'))
    tenant = db.relationship('User', foreign_keys=[tenant_id])
    landlord = db.relationship('User', foreign_keys=[landlord_id])
    application = db.relationship('RentalApplication', backref=db.backref('leases', lazy='dynamic'))
    previous_lease = db.relationship('Lease', remote_side=[id], backref=db.backref('renewals', lazy='dynamic'))
    payment_entries = db.relationship('PaymentScheduleEntry', backref='lease', lazy='dynamic',
                                      order_by='PaymentScheduleEntry.due_date')

    def is_signing(self):
        return self.status in LEASE_SIGNING_STATUSES

    def is_active(self):
        return self.status == LeaseStatus.ACTIVE

    def signature_status(self):
        """Status implied by which signatures are on file."""
        tenant_signed = self.tenant_signed_at is not None
        landlord_signed = self.landlord_signed_at is not None
        if tenant_signed and landlord_signed:
            return LeaseStatus.ACTIVE
        if tenant_signed:
            return LeaseStatus.PENDING_LANDLORD_SIGNATURE
        if landlord_signed:
            return LeaseStatus.PENDING_TENANT_SIGNATURE
        return LeaseStatus.DRAFT

    def to_dict(self, summary=False):
        data = {
            'id': self.id,
            'property_id': self.property_id,
            'property_title': self.property.title if self.property else None,
            'tenant_id': self.tenant_id,
            'tenant_name': self.tenant.name if self.tenant else None,
            'landlord_id': self.landlord_id,
            'landlord_name': self.landlord.name if self.landlord else None,
            'status': self.status,
            'lease_type': self.lease_type,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'monthly_rent': money_str(self.monthly_rent),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if summary:
            return data

        data.update({
            'application_id': self.application_id,
            'previous_lease_id': self.previous_lease_id,
            'property_address': self.property.address if self.property else None,
            'currency': self.currency,
            'security_deposit': money_str(self.security_deposit),
            'payment_due_day': self.payment_due_day,
            'late_fee_amount': money_str(self.late_fee_amount),
            'late_fee_grace_days': self.late_fee_grace_days,
            'pets_allowed': bool(self.pets_allowed),
            'smoking_allowed': bool(self.smoking_allowed),
            'subletting_allowed': bool(self.subletting_allowed),
            'special_terms': self.special_terms,
            'tenant_signature': self.tenant_signature,
            'tenant_signed_at': self.tenant_signed_at.isoformat() if self.tenant_signed_at else None,
            'landlord_signature': self.landlord_signature,
            'landlord_signed_at': self.landlord_signed_at.isoformat() if self.landlord_signed_at else None,
            'activated_at': self.activated_at.isoformat() if self.activated_at else None,
            'schedule_generated_at': self.schedule_generated_at.isoformat() if self.schedule_generated_at else None,
            'termination_date': self.termination_date.isoformat() if self.termination_date else None,
            'termination_reason': self.termination_reason,
            'termination_notes': self.termination_notes,
            'version': self.version,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        })
        return data

    def __repr__(self):
        return f'<Lease {self.id} {self.status}>'
