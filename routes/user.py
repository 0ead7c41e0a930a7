from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from models import UserProduct
from services import earning, ledger, prize, purchase, team, vip

user_bp = Blueprint('user', __name__, url_prefix='/api')

def _payload():
    return request.get_json(silent=True) or {}

# --- Products & earning ---

@user_bp.route('/products/<int:product_id>/purchase', methods=['POST'])
@login_required
def purchase_product(product_id):
    return purchase.purchase_product(current_user.id, product_id).to_response()

@user_bp.route('/my-products')
@login_required
def my_products():
    return purchase.list_user_products(current_user.id).to_response()

@user_bp.route('/my-products/<int:user_product_id>/earn-status')
@login_required
def earn_status(user_product_id):
    if not UserProduct.query.filter_by(id=user_product_id, user_id=current_user.id).first():
        return jsonify({'success': False, 'error': {'kind': 'NotFound', 'message': 'Product not found'}}), 404
    return earning.get_earn_window_status(user_product_id).to_response()

@user_bp.route('/my-products/<int:user_product_id>/earn', methods=['POST'])
@login_required
def earn(user_product_id):
    return earning.claim_earn_window(current_user.id, user_product_id).to_response()

# --- VIP ---

@user_bp.route('/vip')
@login_required
def vip_status():
    return vip.get_vip_status(current_user.id).to_response()

@user_bp.route('/vip/claim', methods=['POST'])
@login_required
def vip_claim():
    results = vip.claim_vip_rewards(current_user.id)
    return jsonify({
        'success': any(r.ok for r in results.values()),
        'data': {name: r.to_dict() for name, r in results.items()},
    })

# --- Prize ---

@user_bp.route('/prize')
@login_required
def prize_status():
    return prize.get_prize_eligibility(current_user.id).to_response()

@user_bp.route('/prize/smash', methods=['POST'])
@login_required
def prize_smash():
    return prize.smash_prize(current_user.id).to_response()

# --- Wallet ---

@user_bp.route('/wallet')
@login_required
def wallet():
    return ledger.get_wallet(current_user.id).to_response()

@user_bp.route('/wallet/recharge', methods=['POST'])
@login_required
def recharge():
    data = _payload()
    return ledger.request_recharge(
        current_user.id, data.get('amount'), proof_image_url=data.get('proof_image_url', '')
    ).to_response()

@user_bp.route('/wallet/withdraw', methods=['POST'])
@login_required
def withdraw():
    data = _payload()
    return ledger.request_withdrawal(
        current_user.id,
        data.get('amount'),
        payment_method=data.get('payment_method'),
        payment_name=data.get('payment_name'),
        payment_number=data.get('payment_number'),
    ).to_response()

@user_bp.route('/withdrawals')
@login_required
def withdrawals():
    return jsonify({'success': True, 'data': ledger.list_withdrawals(current_user.id)})

# --- Team ---

@user_bp.route('/team')
@login_required
def team_summary():
    return team.get_team_summary(current_user.id).to_response()

@user_bp.route('/team/statistics')
@login_required
def team_statistics():
    return team.get_referral_statistics(current_user.id).to_response()
