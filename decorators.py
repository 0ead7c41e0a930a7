from functools import wraps
from flask import jsonify
from flask_login import current_user

def role_required(role_name):
    """
    Custom decorator to check the user's role before accessing a route.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # 1. Check if user is authenticated
            if not current_user.is_authenticated:
                return jsonify({'success': False, 'error': {'kind': 'Unauthorized', 'message': 'Please log in to access this page.'}}), 401

            # 2. Check role
            if current_user.role == role_name:
                return f(*args, **kwargs)

            # 3. Access Denied
            return jsonify({'success': False, 'error': {'kind': 'Forbidden', 'message': 'You do not have the required permissions to perform this action.'}}), 403

        return decorated_function
    return decorator

def admin_required(f):
    """Shortcut decorator for admin access only"""
    return role_required('admin')(f)
