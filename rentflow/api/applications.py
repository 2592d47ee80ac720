from datetime import datetime, time, timedelta
from flask import Blueprint, request, jsonify, g
from flask_jwt_extended import jwt_required
from rentflow.models.rental_application import RentalApplication
from rentflow.models.enums import ApplicationStatus, ApplicationStage
from rentflow.services import application_engine
from rentflow.utils.decorators import tenant_required, user_required
from rentflow.utils.pagination import apply_sort, paginated
from rentflow.utils.validators import parse_date, parse_enum

applications_bp = Blueprint('applications', __name__)

SORT_COLUMNS = {
    'submitted': RentalApplication.submitted_at,
    'created': RentalApplication.created_at,
    'income': RentalApplication.monthly_income,
}


def _payload():
    return request.get_json(silent=True) or {}


@applications_bp.route('/', methods=['POST'], strict_slashes=False)
@jwt_required()
@tenant_required
def create_application():
    """Start an application (pass submit_now to submit it straight away)"""
    application = application_engine.create_application(g.current_user, _payload())
    return jsonify({
        'message': 'Application created successfully',
        'application': application.to_dict()
    }), 201


@applications_bp.route('/', methods=['GET'], strict_slashes=False)
@jwt_required()
@user_required
def list_applications():
    """Applications visible to the current user, with filters"""
    query = application_engine.visible_applications(g.current_user)

    property_id = request.args.get('property_id', type=int)
    tenant_id = request.args.get('tenant_id', type=int)
    status = parse_enum(request.args.get('status'), ApplicationStatus, 'status', required=False)
    stage = parse_enum(request.args.get('stage'), ApplicationStage, 'stage', required=False)
    submitted_after = parse_date(request.args.get('submitted_after'), 'submitted_after', required=False)
    submitted_before = parse_date(request.args.get('submitted_before'), 'submitted_before', required=False)

    if property_id:
        query = query.filter(RentalApplication.property_id == property_id)
    if tenant_id:
        query = query.filter(RentalApplication.tenant_id == tenant_id)
    if status:
        query = query.filter(RentalApplication.status == status.value)
    if stage:
        query = query.filter(RentalApplication.stage == stage.value)
    if submitted_after:
        query = query.filter(RentalApplication.submitted_at >= datetime.combine(submitted_after, time.min))
    if submitted_before:
        query = query.filter(RentalApplication.submitted_at < datetime.combine(submitted_before + timedelta(days=1), time.min))

    query = apply_sort(query, SORT_COLUMNS, default='created')
    return jsonify(paginated(query, 'applications', lambda a: a.to_dict(summary=True))), 200


@applications_bp.route('/<int:application_id>', methods=['GET'])
@jwt_required()
@user_required
def get_application(application_id):
    application = application_engine.get_application(application_id, g.current_user)
    return jsonify({'application': application.to_dict()}), 200


@applications_bp.route('/<int:application_id>', methods=['PUT'])
@jwt_required()
@tenant_required
def update_application(application_id):
    """Edit a Draft or AdditionalInfoRequested application"""
    application = application_engine.update_application(application_id, g.current_user, _payload())
    return jsonify({
        'message': 'Application updated successfully',
        'application': application.to_dict()
    }), 200


@applications_bp.route('/<int:application_id>/submit', methods=['POST'])
@jwt_required()
@tenant_required
def submit_application(application_id):
    application = application_engine.submit(application_id, g.current_user)
    return jsonify({
        'message': 'Application submitted successfully',
        'application': application.to_dict()
    }), 200


@applications_bp.route('/<int:application_id>/review', methods=['POST'])
@jwt_required()
@user_required
def begin_review(application_id):
    application = application_engine.begin_review(
        application_id, g.current_user, stage=_payload().get('stage')
    )
    return jsonify({
        'message': 'Application is under review',
        'application': application.to_dict()
    }), 200


@applications_bp.route('/<int:application_id>/decision', methods=['POST'])
@jwt_required()
@user_required
def decide(application_id):
    """Approve, reject or ask the applicant for more information"""
    data = _payload()
    application = application_engine.decide(
        application_id,
        g.current_user,
        data.get('status'),
        comments=data.get('comments'),
        stage=data.get('stage'),
    )
    return jsonify({
        'message': f'Application {application.status}',
        'application': application.to_dict()
    }), 200


@applications_bp.route('/<int:application_id>/withdraw', methods=['POST'])
@jwt_required()
@tenant_required
def withdraw_application(application_id):
    application = application_engine.withdraw(application_id, g.current_user)
    return jsonify({
        'message': 'Application withdrawn',
        'application': application.to_dict()
    }), 200
