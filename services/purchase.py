"""
Purchase workflow and product catalog.

A purchase debits the recharge wallet, grants a UserProduct whose earn window
starts immediately, activates the account on the first purchase and pays the
referrer a one-time bonus. All of it is committed together or not at all.
"""

import math
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from flask import current_app
from extensions import db
from models import User, Product, UserProduct
from services import clock, ledger
from services.earning import window_status
from services.errors import NotFound, ProductUnavailable, InvalidAmount, ValidationError
from services.results import service_operation
from utils import get_decimal_setting, log_admin_activity

logger = logging.getLogger(__name__)


# --- Purchase ---

@service_operation
def purchase_product(user_id, product_id, now=None):
    now = now or clock.utcnow()
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound('User not found')

    product = db.session.get(Product, product_id)
    if product is None or product.deleted:
        raise ProductUnavailable('This product is no longer available.')

    validity_days = product.resolve_validity_days(now)
    if validity_days <= 0:
        raise ProductUnavailable('This product is no longer available.')

    price = Decimal(product.price)
    is_first_purchase = UserProduct.query.filter_by(user_id=user_id).first() is None

    ledger.debit(user_id, 'recharge_wallet', price)

    account_activated = False
    if is_first_purchase and not user.is_active:
        user.is_active = True
        user.activated_at = now
        account_activated = True
    if is_first_purchase and user.first_purchase_at is None:
        user.first_purchase_at = now

    user_product = UserProduct(
        user_id=user_id,
        product_id=product.id,
        product_name=product.name,
        product_price=price,
        product_description=product.description or '',
        image_url=product.image_url or '',
        purchase_date=now,
        status='active',
        validity_days=validity_days,
        validate_date=product.validate_date,
        earn_amount=Decimal(product.earn_amount or 0),
        max_earning=Decimal(product.total_earning or 0),
        earn_window_start_at=now,
        total_earnings=Decimal('0'),
        created_at=now,
    )
    db.session.add(user_product)
    db.session.flush()

    ledger.record_transaction(
        user_id, 'purchase', price,
        status='completed',
        reference_prefix='PURCHASE',
        now=now,
        description=f"Purchased {product.name}",
        product_id=product.id,
        user_product_id=user_product.id,
    )

    bonus = None
    if is_first_purchase:
        bonus = _pay_referral_bonus(user, product, now)

    logger.info(f"User {user_id} purchased product {product.id} for {price}")
    return {
        'user_product_id': user_product.id,
        'account_activated': account_activated,
        'referral_bonus_paid': bonus is not None,
        'referral_bonus_amount': bonus,
        'product': user_product.to_dict(),
    }


def _pay_referral_bonus(user, product, now):
    """Credit the referrer once per referred user; returns the amount paid or None."""
    if not user.referred_by or user.referral_purchase_bonus_granted:
        return None
    referrer = db.session.get(User, user.referred_by)
    if referrer is None:
        logger.warning(f"User {user.id} references missing referrer {user.referred_by}")
        return None

    db.session.flush()
    granted = User.query.filter(
        User.id == user.id,
        User.referral_purchase_bonus_granted.is_(False),
    ).update({
        User.referral_purchase_bonus_granted: True,
        User.referral_purchase_bonus_granted_at: now,
    }, synchronize_session=False)
    if not granted:
        return None

    bonus = get_decimal_setting('referral_bonus', current_app.config['REFERRAL_BONUS_DEFAULT'])
    ledger.credit(referrer.id, balance_wallet=bonus, total_earnings=bonus, income_today=bonus)
    ledger.record_transaction(
        referrer.id, 'referral_purchase_bonus', bonus,
        status='completed',
        reference_prefix='REFBONUS',
        now=now,
        description=f"Referral bonus: {user.name} purchased {product.name}",
        referred_user_id=user.id,
        product_id=product.id,
    )
    logger.info(f"Referral bonus {bonus} paid to user {referrer.id} for user {user.id}")
    return bonus


# --- Catalog ---

def _non_negative(value, field):
    if value in (None, ''):
        return Decimal('0')
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmount(f'Invalid {field}')
    if not amount.is_finite() or amount < 0:
        raise InvalidAmount(f'Invalid {field}')
    return amount.quantize(Decimal('0.01'))


def _parse_date(value):
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise ValidationError('Invalid validate_date')


def _validity_days(value):
    try:
        days = math.floor(float(value))
    except (TypeError, ValueError):
        raise ValidationError('Invalid validity_days')
    if days <= 0:
        raise ValidationError('validity_days must be positive')
    return days


@service_operation
def add_product(data, admin_id=None):
    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationError('Product name is required')
    if data.get('price') in (None, ''):
        raise InvalidAmount('Product price is required')

    validate_date = _parse_date(data.get('validate_date'))
    validity_days = None
    if data.get('validity_days') not in (None, ''):
        validity_days = _validity_days(data['validity_days'])
    elif validate_date is None:
        validity_days = current_app.config['DEFAULT_VALIDITY_DAYS']

    product = Product(
        name=name,
        price=_non_negative(data.get('price'), 'price'),
        description=data.get('description') or '',
        image_url=data.get('image_url') or '',
        validity_days=validity_days,
        validate_date=validate_date,
        earn_amount=_non_negative(data.get('earn_amount'), 'earn_amount'),
        total_earning=_non_negative(data.get('total_earning'), 'total_earning'),
    )
    db.session.add(product)
    db.session.flush()
    if admin_id:
        log_admin_activity(admin_id, 'Add Product', f'Product #{product.id} {product.name}')
    return product.to_dict()


@service_operation
def update_product(product_id, data, admin_id=None):
    """
    Change the catalog fields present in `data`. Products already bought keep
    the snapshot taken at purchase time.
    """
    product = db.session.get(Product, product_id)
    if product is None or product.deleted:
        raise NotFound('Product not found')

    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError('Product name is required')
        product.name = name
    if 'price' in data:
        if data.get('price') in (None, ''):
            raise InvalidAmount('Product price is required')
        product.price = _non_negative(data['price'], 'price')
    for field in ('earn_amount', 'total_earning'):
        if field in data:
            setattr(product, field, _non_negative(data[field], field))
    for field in ('description', 'image_url'):
        if field in data:
            setattr(product, field, data.get(field) or '')
    if 'validate_date' in data:
        product.validate_date = _parse_date(data['validate_date'])
    if 'validity_days' in data:
        product.validity_days = None if data['validity_days'] in (None, '') \
            else _validity_days(data['validity_days'])

    if not product.validity_days and product.validate_date is None:
        product.validity_days = current_app.config['DEFAULT_VALIDITY_DAYS']

    db.session.flush()
    if admin_id:
        log_admin_activity(admin_id, 'Update Product', f'Product #{product.id} {product.name}')
    return product.to_dict()


@service_operation
def delete_product(product_id, admin_id=None, now=None):
    product = db.session.get(Product, product_id)
    if product is None or product.deleted:
        raise NotFound('Product not found')
    product.deleted = True
    product.deleted_at = now or clock.utcnow()
    if admin_id:
        log_admin_activity(admin_id, 'Delete Product', f'Product #{product.id} {product.name}')
    return {'id': product.id, 'deleted': True}


def list_products():
    products = Product.query.filter_by(deleted=False).order_by(Product.price).all()
    return [p.to_dict() for p in products]


# --- Purchased products ---

@service_operation
def list_user_products(user_id, now=None):
    """Split the user's products into unexpired and expired, flagging newly expired ones."""
    now = now or clock.utcnow()
    unexpired, expired = [], []
    user_products = UserProduct.query.filter_by(user_id=user_id) \
        .order_by(UserProduct.purchase_date.desc()).all()

    for user_product in user_products:
        if user_product.status == 'expired' or user_product.is_expired(now):
            if user_product.status != 'expired':
                user_product.status = 'expired'
            expired.append(user_product.to_dict())
            continue
        item = user_product.to_dict()
        item['days_remaining'] = math.ceil((user_product.expires_at - now).total_seconds() / 86400)
        item['earn_status'] = window_status(user_product, now)
        unexpired.append(item)

    return {'unexpired': unexpired, 'expired': expired}
