from datetime import datetime
from rentflow import db
from rentflow.models.enums import PaymentStatus, PAYMENT_MANUAL_STATUSES
from rentflow.utils.money import money_str

class PaymentScheduleEntry(db.Model):
    """One obligation due under a lease. Entries are transitioned, never deleted."""
    __tablename__ = 'payment_schedule_entries'

    id = db.Column(db.Integer, primary_key=True)
    lease_id = db.Column(db.Integer, db.ForeignKey('leases.id'), nullable=False, index=True)

    # Payment Type: Rent, Deposit, LateFee, Other
    payment_type = db.Column(db.String(20), nullable=False)
    due_date = db.Column(db.Date, nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    amount_paid = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Status: Pending, PartiallyPaid, Paid, Overdue, Waived, Refunded, Cancelled
    status = db.Column(db.String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True)

    description = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # The rent entry a late fee penalises (one fee per entry)
    late_fee_for_id = db.Column(db.Integer, db.ForeignKey('payment_schedule_entries.id'),
                                nullable=True, unique=True)

    paid_at = db.Column(db.DateTime, nullable=True)
    waived_at = db.Column(db.DateTime, nullable=True)
    waived_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    waiver_reason = db.Column(db.Text, nullable=True)
    refunded_at = db.Column(db.DateTime, nullable=True)
    refunded_amount = db.Column(db.Numeric(12, 2), nullable=True)
    refund_reason = db.Column(db.Text, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {'version_id_col': version}

    paid_history = db.relationship('PaymentRecord', backref='entry', lazy='select',
                                   order_by='PaymentRecord.id', cascade='all, delete-orphan')
    late_fee_for = db.relationship('PaymentScheduleEntry', remote_side=[id],
                                   backref=db.backref('late_fee', uselist=False))

    def is_manual(self):
        return self.status in PAYMENT_MANUAL_STATUSES

    def balance(self):
        return max(self.amount - self.amount_paid, 0)

    def to_dict(self, include_history=False):
        data = {
            'id': self.id,
            'lease_id': self.lease_id,
            'lease_property_title': self.lease.property.title if self.lease and self.lease.property else None,
            'lease_tenant_name': self.lease.tenant.name if self.lease and self.lease.tenant else None,
            'payment_type': self.payment_type,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'amount': money_str(self.amount),
            'amount_paid': money_str(self.amount_paid),
            'status': self.status,
            'description': self.description,
            'notes': self.notes,
            'late_fee_for_id': self.late_fee_for_id,
            'paid_at': self.paid_at.isoformat() if self.paid_at else None,
            'waived_at': self.waived_at.isoformat() if self.waived_at else None,
            'waived_by': self.waived_by,
            'waiver_reason': self.waiver_reason,
            'refunded_at': self.refunded_at.isoformat() if self.refunded_at else None,
            'refunded_amount': money_str(self.refunded_amount),
            'refund_reason': self.refund_reason,
            'version': self.version,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_history:
            data['paid_history'] = [record.to_dict() for record in self.paid_history]
        return data

    def __repr__(self):
        return f'<PaymentScheduleEntry {self.id} {self.payment_type} {self.status}>'


class PaymentRecord(db.Model):
    """Append-only settlement line on an entry (refunds carry a negative amount)."""
    __tablename__ = 'payment_records'

    id = db.Column(db.Integer, primary_key=True)
    entry_id = db.Column(db.Integer, db.ForeignKey('payment_schedule_entries.id'), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    method = db.Column(db.String(100), nullable=False)
    reference = db.Column(db.String(255), nullable=True)
    proof_url = db.Column(db.String(500), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    recorded_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    recorded_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'amount': money_str(self.amount),
            'method': self.method,
            'reference': self.reference,
            'proof_url': self.proof_url,
            'notes': self.notes,
            'recorded_by': self.recorded_by,
            'recorded_at': self.recorded_at.isoformat() if self.recorded_at else None,
        }

    def __repr__(self):
        return f'<PaymentRecord {self.id} {self.amount}>'
