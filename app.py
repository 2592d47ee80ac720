#!/usr/bin/env python3
"""
Rentflow Lifecycle API Runner
"""
import os
from rentflow import create_app, db
from rentflow.models import User, Property, RentalApplication, Lease, PaymentScheduleEntry, AuditLog

app = create_app()

@app.shell_context_processor
def make_shell_context():
    return {
        'db': db,
        'User': User,
        'Property': Property,
        'RentalApplication': RentalApplication,
        'Lease': Lease,
        'PaymentScheduleEntry': PaymentScheduleEntry,
        'AuditLog': AuditLog
    }

if __name__ == '__main__':
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('FLASK_ENV') == 'development'
    app.run(host='0.0.0.0', port=port, debug=debug)
