from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from extensions import db
from models import AuditLog
from decorators import admin_required
from services import accounts, ledger, purchase
from utils import log_admin_activity, set_setting

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')

SETTING_KEYS = ('referral_bonus', 'currency', 'bkash_number', 'bkash_qr_code_id', 'support_number')

def _note():
    data = request.get_json(silent=True) or {}
    return data.get('admin_note', '')

# --- Members ---
@admin_bp.route('/members')
@login_required
@admin_required
def members():
    return jsonify({'success': True, 'data': accounts.list_members()})

@admin_bp.route('/members/<int:user_id>/active', methods=['POST'])
@login_required
@admin_required
def set_member_active(user_id):
    data = request.get_json(silent=True) or {}
    return accounts.set_member_active(user_id, data.get('active', True), admin_id=current_user.id).to_response()

# --- Products ---
@admin_bp.route('/products', methods=['POST'])
@login_required
@admin_required
def add_product():
    result = purchase.add_product(request.get_json(silent=True) or {}, admin_id=current_user.id)
    if not result.ok:
        return result.to_response()
    return jsonify(result.to_dict()), 201

@admin_bp.route('/products/<int:product_id>', methods=['POST'])
@login_required
@admin_required
def update_product(product_id):
    data = request.get_json(silent=True) or {}
    return purchase.update_product(product_id, data, admin_id=current_user.id).to_response()

@admin_bp.route('/products/<int:product_id>/delete', methods=['POST'])
@login_required
@admin_required
def delete_product(product_id):
    return purchase.delete_product(product_id, admin_id=current_user.id).to_response()

# --- Recharges ---
@admin_bp.route('/recharges')
@login_required
@admin_required
def recharges():
    return jsonify({'success': True, 'data': ledger.list_pending_recharges()})

@admin_bp.route('/recharges/<int:tx_id>/approve', methods=['POST'])
@login_required
@admin_required
def approve_recharge(tx_id):
    return ledger.approve_recharge(tx_id, admin_id=current_user.id, admin_note=_note()).to_response()

@admin_bp.route('/recharges/<int:tx_id>/reject', methods=['POST'])
@login_required
@admin_required
def reject_recharge(tx_id):
    return ledger.reject_recharge(tx_id, admin_id=current_user.id, admin_note=_note()).to_response()

# --- Withdrawals ---
@admin_bp.route('/withdrawals')
@login_required
@admin_required
def withdrawals():
    return jsonify({'success': True, 'data': ledger.list_withdrawals()})

@admin_bp.route('/withdrawals/<int:tx_id>/approve', methods=['POST'])
@login_required
@admin_required
def approve_withdrawal(tx_id):
    return ledger.approve_withdrawal(tx_id, admin_id=current_user.id, admin_note=_note()).to_response()

@admin_bp.route('/withdrawals/<int:tx_id>/reject', methods=['POST'])
@login_required
@admin_required
def reject_withdrawal(tx_id):
    return ledger.reject_withdrawal(tx_id, admin_id=current_user.id, admin_note=_note()).to_response()

# --- Settings ---
@admin_bp.route('/settings', methods=['POST'])
@login_required
@admin_required
def update_settings():
    data = request.get_json(silent=True) or {}
    changed = {key: data[key] for key in SETTING_KEYS if key in data}
    for key, value in changed.items():
        set_setting(key, value)
    if changed:
        log_admin_activity(current_user.id, 'Update Settings', ', '.join(sorted(changed)))
    db.session.commit()
    return jsonify({'success': True, 'data': {'updated': sorted(changed)}})

# --- Audit Logs ---
@admin_bp.route('/logs')
@login_required
@admin_required
def logs():
    entries = AuditLog.query.order_by(AuditLog.timestamp.desc()).limit(200).all()
    return jsonify({'success': True, 'data': [
        {'user_id': e.user_id, 'action': e.action, 'details': e.details,
         'ip_address': e.ip_address, 'timestamp': e.timestamp.isoformat() if e.timestamp else None}
        for e in entries
    ]})
