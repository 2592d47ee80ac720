from rentflow import db
from rentflow.models.enums import ApplicationStatus, ApplicationStage
from rentflow.utils.money import money_str
from datetime import datetime

class RentalApplication(db.Model):
    """One tenant's bid on one property.

    Never hard-deleted: withdrawal leaves a terminal record behind.
    """
    __tablename__ = 'rental_applications'

    id = db.Column(db.Integer, primary_key=True)
    property_id = db.Column(db.Integer, db.ForeignKey('properties.id'), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    status = db.Column(db.String(50), nullable=False, default=ApplicationStatus.DRAFT.value, index=True)
    stage = db.Column(db.String(50), nullable=False, default=ApplicationStage.INITIAL_SUBMISSION.value)

    # Terms requested
    desired_move_in_date = db.Column(db.Date, nullable=False)
    lease_term_months = db.Column(db.Integer, nullable=False)
    number_of_occupants = db.Column(db.Integer, nullable=False, default=1)
    monthly_income = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Applicant details
    employment_status = db.Column(db.String(50), nullable=True)
    employer_name = db.Column(db.String(255), nullable=True)
    employer_phone = db.Column(db.String(50), nullable=True)
    current_address = db.Column(db.String(500), nullable=True)
    reason_for_moving = db.Column(db.Text, nullable=True)
    emergency_contact_name = db.Column(db.String(255), nullable=True)
    emergency_contact_phone = db.Column(db.String(50), nullable=True)
    has_pets = db.Column(db.Boolean, default=False)
    pet_description = db.Column(db.Text, nullable=True)
    references = db.Column(db.JSON, default=list)
    documents = db.Column(db.JSON, default=list)  # opaque storage references
    additional_notes = db.Column(db.Text, nullable=True)

    # Review
    submitted_at = db.Column(db.DateTime, nullable=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    reviewed_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    review_comments = db.Column(db.Text, nullable=True)

    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {'version_id_col': version}

    # Relationships
    property = db.relationship('Property', backref=db.backref('applications', lazy='dynamic'))
    tenant = db.relationship('User', foreign_keys=[tenant_id], backref=db.backref('applications_made', lazy='dynamic'))
    reviewer = db.relationship('User', foreign_keys=[reviewed_by])

    def has_emergency_contact(self):
        return bool((self.emergency_contact_name or '').strip() and (self.emergency_contact_phone or '').strip())

    def to_dict(self, summary=False):
        data = {
            'id': self.id,
            'property_id': self.property_id,
            'property_title': self.property.title if self.property else None,
            'tenant_id': self.tenant_id,
            'tenant_name': self.tenant.name if self.tenant else None,
            'status': self.status,
            'stage': self.stage,
            'desired_move_in_date': self.desired_move_in_date.isoformat() if self.desired_move_in_date else None,
            'lease_term_months': self.lease_term_months,
            'monthly_income': money_str(self.monthly_income),
            'submitted_at': self.submitted_at.isoformat() if self.submitted_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if summary:
            return data

        data.update({
            'property_address': self.property.address if self.property else None,
            'tenant_email': self.tenant.email if self.tenant else None,
            'tenant_phone': self.tenant.phone if self.tenant else None,
            'number_of_occupants': self.number_of_occupants,
            'employment_status': self.employment_status,
            'employer_name': self.employer_name,
            'employer_phone': self.employer_phone,
            'current_address': self.current_address,
            'reason_for_moving': self.reason_for_moving,
            'emergency_contact_name': self.emergency_contact_name,
            'emergency_contact_phone': self.emergency_contact_phone,
            'has_pets': bool(self.has_pets),
            'pet_description': self.pet_description,
            'references': self.references or [],
            'documents': self.documents or [],
            'additional_notes': self.additional_notes,
            'reviewed_at': self.reviewed_at.isoformat() if self.reviewed_at else None,
            'reviewed_by': self.reviewed_by,
            'reviewer': self.reviewer.name if self.reviewer else None,
            'review_comments': self.review_comments,
            'version': self.version,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        })
        return data

    def __repr__(self):
        return f'<RentalApplication {self.id} {self.status}>'
