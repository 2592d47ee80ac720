from datetime import datetime, time, timedelta
from flask import Blueprint, request, jsonify, g
from flask_jwt_extended import jwt_required
from rentflow.models.payment_schedule import PaymentScheduleEntry
from rentflow.models.enums import PaymentStatus, PaymentType
from rentflow.services import payment_schedule
from rentflow.utils.decorators import landlord_required, user_required
from rentflow.utils.pagination import apply_sort, paginated
from rentflow.utils.validators import parse_date, parse_enum, parse_int

payments_bp = Blueprint('payments', __name__)

SORT_COLUMNS = {
    'duedate': PaymentScheduleEntry.due_date,
    'amount': PaymentScheduleEntry.amount,
    'status': PaymentScheduleEntry.status,
    'paidat': PaymentScheduleEntry.paid_at,
}


def _payload():
    return request.get_json(silent=True) or {}


@payments_bp.route('/', methods=['GET'], strict_slashes=False)
@jwt_required()
@user_required
def list_payments():
    """Schedule entries visible to the current user, with filters"""
    query = payment_schedule.visible_entries(g.current_user)

    lease_id = request.args.get('lease_id', type=int)
    status = parse_enum(request.args.get('status'), PaymentStatus, 'status', required=False)
    payment_type = parse_enum(request.args.get('payment_type'), PaymentType, 'payment_type', required=False)
    due_after = parse_date(request.args.get('due_after'), 'due_after', required=False)
    due_before = parse_date(request.args.get('due_before'), 'due_before', required=False)
    paid_after = parse_date(request.args.get('paid_after'), 'paid_after', required=False)
    paid_before = parse_date(request.args.get('paid_before'), 'paid_before', required=False)

    if lease_id:
        query = query.filter(PaymentScheduleEntry.lease_id == lease_id)
    if status:
        query = query.filter(PaymentScheduleEntry.status == status.value)
    if payment_type:
        query = query.filter(PaymentScheduleEntry.payment_type == payment_type.value)
    if due_after:
        query = query.filter(PaymentScheduleEntry.due_date >= due_after)
    if due_before:
        query = query.filter(PaymentScheduleEntry.due_date <= due_before)
    if paid_after:
        query = query.filter(PaymentScheduleEntry.paid_at >= datetime.combine(paid_after, time.min))
    if paid_before:
        query = query.filter(PaymentScheduleEntry.paid_at < datetime.combine(paid_before + timedelta(days=1), time.min))

    query = apply_sort(query, SORT_COLUMNS, default='duedate')
    return jsonify(paginated(query, 'payments', lambda entry: entry.to_dict(), default_per_page=50)), 200


@payments_bp.route('/', methods=['POST'], strict_slashes=False)
@jwt_required()
@landlord_required
def add_payment_entry():
    """Add a late fee, extra deposit or other charge to an Active lease"""
    data = _payload()
    lease_id = parse_int(data.get('lease_id'), 'lease_id')
    entry = payment_schedule.add_entry(lease_id, g.current_user, data)
    return jsonify({
        'message': 'Payment entry added',
        'payment': entry.to_dict()
    }), 201


@payments_bp.route('/<int:entry_id>', methods=['GET'])
@jwt_required()
@user_required
def get_payment(entry_id):
    entry = payment_schedule.get_entry(entry_id, g.current_user)
    return jsonify({'payment': entry.to_dict(include_history=True)}), 200


@payments_bp.route('/<int:entry_id>', methods=['PUT'])
@jwt_required()
@landlord_required
def update_payment(entry_id):
    """Correct an unsettled entry's due date, amount, description or notes"""
    entry = payment_schedule.update_entry(entry_id, g.current_user, _payload())
    return jsonify({
        'message': 'Payment updated',
        'payment': entry.to_dict(include_history=True)
    }), 200


@payments_bp.route('/<int:entry_id>/record', methods=['POST'])
@jwt_required()
@landlord_required
def record_payment(entry_id):
    """Record money received against an entry"""
    data = _payload()
    entry = payment_schedule.record_payment(
        entry_id,
        g.current_user,
        data.get('amount'),
        data.get('method'),
        reference=data.get('reference'),
        proof_url=data.get('proof_url'),
        notes=data.get('notes'),
    )
    return jsonify({
        'message': f'Payment recorded, entry is {entry.status}',
        'payment': entry.to_dict(include_history=True)
    }), 200


@payments_bp.route('/<int:entry_id>/waive', methods=['POST'])
@jwt_required()
@landlord_required
def waive_payment(entry_id):
    entry = payment_schedule.waive_payment(entry_id, g.current_user, _payload().get('reason'))
    return jsonify({
        'message': 'Payment waived',
        'payment': entry.to_dict(include_history=True)
    }), 200


@payments_bp.route('/<int:entry_id>/refund', methods=['POST'])
@jwt_required()
@landlord_required
def refund_payment(entry_id):
    data = _payload()
    entry = payment_schedule.refund_payment(
        entry_id,
        g.current_user,
        data.get('amount'),
        reference=data.get('reference'),
        reason=data.get('reason'),
        method=data.get('method') or 'refund',
    )
    return jsonify({
        'message': 'Payment refunded',
        'payment': entry.to_dict(include_history=True)
    }), 200
