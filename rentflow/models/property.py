from datetime import datetime
from rentflow import db

class Property(db.Model):
    """Catalog entry the lifecycle engines check ownership against.

    Listing CRUD lives in the property catalog service; this table only
    mirrors what leasing needs: existence, owner and a display title.
    """
    __tablename__ = 'properties'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    city = db.Column(db.String(100), nullable=True, index=True)
    address = db.Column(db.String(500), nullable=True)

    # Status: active, rented, inactive
    status = db.Column(db.String(50), default='active', index=True)

    landlord_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self, include_landlord=False):
        data = {
            'id': self.id,
            'title': self.title,
            'city': self.city,
            'address': self.address,
            'status': self.status,
            'landlord_id': self.landlord_id,
        }

        if include_landlord and self.landlord:
            data['landlord'] = {
                'id': self.landlord.id,
                'name': self.landlord.name,
                'phone': self.landlord.phone,
                'email': self.landlord.email,
            }

        return data

    def __repr__(self):
        return f'<Property {self.title}>'
