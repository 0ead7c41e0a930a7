from flask import Blueprint, jsonify, current_app
from services.purchase import list_products
from utils import get_setting, get_decimal_setting

main_bp = Blueprint('main', __name__)

@main_bp.route('/health')
def health():
    return jsonify({'status': 'ok'})

@main_bp.route('/api/products')
def products():
    return jsonify({'success': True, 'data': list_products()})

@main_bp.route('/api/settings')
def settings():
    return jsonify({'success': True, 'data': {
        'referral_bonus': get_decimal_setting('referral_bonus', current_app.config['REFERRAL_BONUS_DEFAULT']),
        'currency': get_setting('currency', 'USD'),
        'bkash_number': get_setting('bkash_number'),
        'bkash_qr_code_id': get_setting('bkash_qr_code_id'),
        'support_number': get_setting('support_number', current_app.config['DEFAULT_SUPPORT_NUMBER']),
    }})
