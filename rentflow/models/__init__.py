from .user import User
from .property import Property
from .rental_application import RentalApplication
from .lease import Lease
from .payment_schedule import PaymentScheduleEntry, PaymentRecord
from .audit_log import AuditLog

__all__ = ['User', 'Property', 'RentalApplication', 'Lease', 'PaymentScheduleEntry', 'PaymentRecord', 'AuditLog']
