from functools import wraps
from flask import jsonify, g
from flask_jwt_extended import get_jwt_identity
from rentflow import db
from rentflow.models.user import User


def _resolve_user():
    """Load the JWT's user into ``g.current_user``; None if unknown or disabled"""
    user_id = get_jwt_identity()
    try:
        user = db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        user = None
    if user is None or not user.is_active:
        return None
    g.current_user = user
    return user


def user_required(fn):
    """Decorator to require any active user"""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not _resolve_user():
            return jsonify({'error': 'not_found', 'message': 'User not found'}), 404
        return fn(*args, **kwargs)
    return wrapper


def admin_required(fn):
    """Decorator to require admin or super_admin role"""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = _resolve_user()

        if not user:
            return jsonify({'error': 'not_found', 'message': 'User not found'}), 404

        if not user.is_admin():
            return jsonify({'error': 'not_authorized', 'message': 'Admin access required'}), 403

        return fn(*args, **kwargs)
    return wrapper


def landlord_required(fn):
    """Decorator to require landlord or admin role"""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = _resolve_user()

        if not user:
            return jsonify({'error': 'not_found', 'message': 'User not found'}), 404

        if not (user.is_landlord() or user.is_admin()):
            return jsonify({'error': 'not_authorized', 'message': 'Landlord access required'}), 403

        return fn(*args, **kwargs)
    return wrapper


def tenant_required(fn):
    """Decorator to require the tenant role"""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = _resolve_user()

        if not user:
            return jsonify({'error': 'not_found', 'message': 'User not found'}), 404

        if not user.is_tenant():
            return jsonify({'error': 'not_authorized', 'message': 'Tenant access required'}), 403

        return fn(*args, **kwargs)
    return wrapper
