from flask import Blueprint, request, jsonify, g
from flask_jwt_extended import jwt_required
from rentflow.models.lease import Lease
from rentflow.models.enums import LeaseStatus
from rentflow.services import lease_engine, payment_schedule
from rentflow.utils.decorators import landlord_required, user_required
from rentflow.utils.pagination import apply_sort, paginated
from rentflow.utils.validators import parse_date, parse_enum

leases_bp = Blueprint('leases', __name__)

SORT_COLUMNS = {
    'startdate': Lease.start_date,
    'enddate': Lease.end_date,
    'rent': Lease.monthly_rent,
    'created': Lease.created_at,
}


def _payload():
    return request.get_json(silent=True) or {}


@leases_bp.route('/', methods=['POST'], strict_slashes=False)
@jwt_required()
@landlord_required
def create_lease():
    """Draft a lease, directly or from an Approved application"""
    lease = lease_engine.create_lease(g.current_user, _payload())
    return jsonify({
        'message': 'Lease created successfully',
        'lease': lease.to_dict()
    }), 201


@leases_bp.route('/', methods=['GET'], strict_slashes=False)
@jwt_required()
@user_required
def list_leases():
    """Leases visible to the current user, with filters"""
    query = lease_engine.visible_leases(g.current_user)

    property_id = request.args.get('property_id', type=int)
    tenant_id = request.args.get('tenant_id', type=int)
    landlord_id = request.args.get('landlord_id', type=int)
    status = parse_enum(request.args.get('status'), LeaseStatus, 'status', required=False)
    start_after = parse_date(request.args.get('start_after'), 'start_after', required=False)
    end_before = parse_date(request.args.get('end_before'), 'end_before', required=False)

    if property_id:
        query = query.filter(Lease.property_id == property_id)
    if tenant_id:
        query = query.filter(Lease.tenant_id == tenant_id)
    if landlord_id:
        query = query.filter(Lease.landlord_id == landlord_id)
    if status:
        query = query.filter(Lease.status == status.value)
    if start_after:
        query = query.filter(Lease.start_date >= start_after)
    if end_before:
        query = query.filter(Lease.end_date <= end_before)

    query = apply_sort(query, SORT_COLUMNS, default='created')
    return jsonify(paginated(query, 'leases', lambda lease: lease.to_dict(summary=True))), 200


@leases_bp.route('/<int:lease_id>', methods=['GET'])
@jwt_required()
@user_required
def get_lease(lease_id):
    lease = lease_engine.get_lease(lease_id, g.current_user)
    return jsonify({'lease': lease.to_dict()}), 200


@leases_bp.route('/<int:lease_id>', methods=['PUT'])
@jwt_required()
@landlord_required
def update_lease(lease_id):
    """Edit a lease's dates and terms while it is still a Draft"""
    lease = lease_engine.update_lease(lease_id, g.current_user, _payload())
    return jsonify({
        'message': 'Lease updated',
        'lease': lease.to_dict()
    }), 200


@leases_bp.route('/<int:lease_id>/sign', methods=['POST'])
@jwt_required()
@user_required
def sign_lease(lease_id):
    """Record the caller's signature as tenant or landlord"""
    data = _payload()
    lease = lease_engine.sign(lease_id, g.current_user, data.get('signer_role'), data.get('signature'))
    return jsonify({
        'message': f'Lease is {lease.status}',
        'lease': lease.to_dict()
    }), 200


@leases_bp.route('/<int:lease_id>/terminate', methods=['POST'])
@jwt_required()
@landlord_required
def terminate_lease(lease_id):
    data = _payload()
    lease = lease_engine.terminate(
        lease_id,
        g.current_user,
        data.get('reason'),
        data.get('termination_date'),
        notes=data.get('notes'),
    )
    return jsonify({
        'message': 'Lease terminated',
        'lease': lease.to_dict()
    }), 200


@leases_bp.route('/<int:lease_id>/renew', methods=['POST'])
@jwt_required()
@landlord_required
def renew_lease(lease_id):
    """Draft a renewal; the current lease stays in force until it activates"""
    renewal = lease_engine.renew(lease_id, g.current_user, _payload())
    return jsonify({
        'message': 'Renewal drafted',
        'lease': renewal.to_dict()
    }), 201


@leases_bp.route('/<int:lease_id>/payments', methods=['GET'])
@jwt_required()
@user_required
def get_lease_payments(lease_id):
    lease = lease_engine.get_lease(lease_id, g.current_user)
    entries = payment_schedule.lease_schedule(lease)
    return jsonify({
        'lease_id': lease.id,
        'payments': [entry.to_dict() for entry in entries]
    }), 200
