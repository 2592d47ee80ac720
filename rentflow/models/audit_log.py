from datetime import datetime
from rentflow import db
from flask import request, has_request_context

class AuditLog(db.Model):
    """Court-ready record of every lifecycle event.

    Doubles as the durable log of domain events: ``action`` is the event
    name and ``details`` its payload.
    """
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    action = db.Column(db.String(100), nullable=False, index=True)
    resource_type = db.Column(db.String(50), nullable=True, index=True)
    resource_id = db.Column(db.Integer, nullable=True)

    # Request context when the event came through the API
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.Text, nullable=True)
    details = db.Column(db.JSON, default=dict)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    @staticmethod
    def log(action, user_id=None, resource_type=None, resource_id=None, details=None):
        """Add an audit entry to the current session"""
        in_request = has_request_context()
        log_entry = AuditLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details or {},
            ip_address=request.remote_addr if in_request else None,
            user_agent=request.user_agent.string if in_request and request.user_agent else None
        )
        db.session.add(log_entry)
        # Don't commit here, the engine commits as part of its own transaction
        return log_entry

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'action': self.action,
            'resource_type': self.resource_type,
            'resource_id': self.resource_id,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'details': self.details,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
