from datetime import date

from rentflow import db
from rentflow.models import Lease, PaymentScheduleEntry, RentalApplication
from rentflow.models.enums import ApplicationStatus, LeaseStatus, PaymentStatus


def test_sweep_overdue_command(app, active_lease):
    result = app.test_cli_runner().invoke(args=['sweep-overdue', '--as-of', '2024-02-10'])

    assert result.exit_code == 0, result.output
    assert 'overdue payments: 2 updated as of 2024-02-10' in result.output
    db.session.expire_all()
    overdue = PaymentScheduleEntry.query.filter_by(
        lease_id=active_lease.id, status=PaymentStatus.OVERDUE.value
    ).count()
    assert overdue == 2


def test_expire_commands(app, active_lease, submitted_application):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['expire-applications', '--as-of', '2024-03-01'])
    assert result.exit_code == 0, result.output
    result = runner.invoke(args=['expire-leases', '--as-of', '2024-03-01'])
    assert 'leases: 0 updated' in result.output

    db.session.expire_all()
    assert db.session.get(RentalApplication, submitted_application.id).status == ApplicationStatus.EXPIRED
    assert db.session.get(Lease, active_lease.id).status == LeaseStatus.ACTIVE


def test_run_sweeps(app, active_lease):
    result = app.test_cli_runner().invoke(args=['run-sweeps', '--as-of', '2024-05-01'])

    assert result.exit_code == 0, result.output
    assert 'overdue payments: 4 updated' in result.output
    assert 'leases: 1 updated' in result.output
    db.session.expire_all()
    assert db.session.get(Lease, active_lease.id).status == LeaseStatus.EXPIRED


def test_as_of_must_be_a_date(app):
    result = app.test_cli_runner().invoke(args=['sweep-overdue', '--as-of', 'yesterday'])
    assert result.exit_code != 0


def test_sweeps_default_to_today(app, active_lease):
    result = app.test_cli_runner().invoke(args=['expire-leases'])
    assert result.exit_code == 0, result.output
    assert f'as of {date.today().isoformat()}' in result.output
