from flask import Blueprint, request, jsonify, g
from flask_jwt_extended import jwt_required
from rentflow.models.audit_log import AuditLog
from rentflow.models.user import User
from rentflow.utils.decorators import admin_required, user_required
from rentflow.utils.pagination import paginated
from rentflow.utils.validators import parse_date
from datetime import datetime, time, timedelta

audit_bp = Blueprint('audit', __name__)


@audit_bp.route('/', methods=['GET'], strict_slashes=False)
@jwt_required()
@admin_required
def get_audit_logs():
    """Admin endpoint to fetch the event log with filters"""
    action_filter = request.args.get('action')
    resource_type_filter = request.args.get('resource_type')
    resource_id_filter = request.args.get('resource_id', type=int)
    user_id_filter = request.args.get('user_id', type=int)
    date_from = parse_date(request.args.get('date_from'), 'date_from', required=False)
    date_to = parse_date(request.args.get('date_to'), 'date_to', required=False)

    query = AuditLog.query

    if action_filter and action_filter != 'all':
        query = query.filter(AuditLog.action == action_filter)
    if resource_type_filter and resource_type_filter != 'all':
        query = query.filter(AuditLog.resource_type == resource_type_filter)
    if resource_id_filter:
        query = query.filter(AuditLog.resource_id == resource_id_filter)
    if user_id_filter:
        query = query.filter(AuditLog.user_id == user_id_filter)
    if date_from:
        query = query.filter(AuditLog.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        query = query.filter(AuditLog.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    body = paginated(query, 'logs', lambda log: log.to_dict(), default_per_page=50)

    # Batch-fetch actor names
    user_ids = set(log['user_id'] for log in body['logs'] if log['user_id'])
    users_map = {}
    if user_ids:
        users_map = {u.id: u for u in User.query.filter(User.id.in_(user_ids)).all()}
    for log in body['logs']:
        user = users_map.get(log['user_id'])
        log['user_name'] = user.name if user else ('System' if not log['user_id'] else 'Unknown')

    # Distinct event names for the filter dropdown
    body['distinct_actions'] = [r[0] for r in AuditLog.query.with_entities(AuditLog.action).distinct().all()]
    return jsonify(body), 200


@audit_bp.route('/my', methods=['GET'])
@jwt_required()
@user_required
def get_my_audit_logs():
    """Events the current user triggered"""
    query = AuditLog.query.filter(AuditLog.user_id == g.current_user.id).order_by(
        AuditLog.created_at.desc(), AuditLog.id.desc()
    )
    return jsonify(paginated(query, 'logs', lambda log: log.to_dict())), 200
