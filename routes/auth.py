from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, login_required
from services.accounts import register_user, authenticate

auth_bp = Blueprint('auth', __name__)

@auth_bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    result = register_user(
        data.get('name'),
        data.get('phone'),
        data.get('password'),
        referral_code=data.get('referral_code'),
        nid=data.get('nid'),
        passport=data.get('passport'),
    )
    if not result.ok:
        return result.to_response()
    return jsonify(result.to_dict()), 201

@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    result = authenticate(data.get('identifier'), data.get('password'), data.get('login_type', 'phone'))
    if not result.ok:
        return result.to_response()

    user = result.value
    login_user(user, remember=bool(data.get('remember')))
    return jsonify({'success': True, 'data': user.to_dict()})

@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})
