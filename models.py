"""
Database models (SQLAlchemy).

Each class maps one collection of the rewards platform to a table. Optional and
legacy fields are normalized here (see UserProduct.window_anchor and
UserProduct.expires_at) so the services never branch on missing values.
"""

import math
from datetime import timedelta
from decimal import Decimal
from flask import current_app
from flask_login import UserMixin
from extensions import db
from services.clock import utcnow

def default_validity_days():
    """Configured product lifetime used when neither validity_days nor validate_date is set."""
    return current_app.config['DEFAULT_VALIDITY_DAYS']

# ==========================================
# 1. System Settings
# ==========================================
class SystemSetting(db.Model):
    """Key/value store for the application settings (referral bonus, currency, payment ids)."""
    __tablename__ = 'system_settings'
    key = db.Column(db.String(50), primary_key=True)
    value = db.Column(db.String(200))

# ==========================================
# 2. Users
# ==========================================
class User(UserMixin, db.Model):
    """Platform member (consumer or admin)."""
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    phone = db.Column(db.String(50), unique=True, nullable=False)
    nid = db.Column(db.String(50), index=True)
    passport = db.Column(db.String(50), index=True)
    password = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(20), default='consumer', nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    activated_at = db.Column(db.DateTime)

    referral_code = db.Column(db.String(8), unique=True, nullable=False)
    # Self-referencing key to the referrer
    referred_by = db.Column(db.Integer, db.ForeignKey('users.id'), index=True)
    total_referrals = db.Column(db.Integer, default=0, nullable=False)

    vip_level = db.Column(db.Integer, default=0, nullable=False)
    vip_level_updated_at = db.Column(db.DateTime)
    last_weekly_reward = db.Column(db.DateTime)
    last_monthly_reward = db.Column(db.DateTime)

    first_purchase_at = db.Column(db.DateTime)
    referral_purchase_bonus_granted = db.Column(db.Boolean, default=False, nullable=False)
    referral_purchase_bonus_granted_at = db.Column(db.DateTime)
    last_egg_smash = db.Column(db.DateTime)

    last_login = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    wallet = db.relationship('Wallet', uselist=False, backref='user')
    products = db.relationship('UserProduct', backref='user', lazy=True)
    transactions = db.relationship('Transaction', backref='user', lazy=True,
                                   foreign_keys='Transaction.user_id')

    @property
    def is_admin(self):
        return self.role == 'admin'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'phone': self.phone,
            'role': self.role,
            'is_active': self.is_active,
            'referral_code': self.referral_code,
            'referred_by': self.referred_by,
            'total_referrals': self.total_referrals,
            'vip_level': self.vip_level,
            'created_at': _iso(self.created_at),
        }

# ==========================================
# 3. Wallets
# ==========================================
class Wallet(db.Model):
    """Balances of one user. Mutated only through atomic increments (see services.ledger)."""
    __tablename__ = 'wallets'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=False)

    # Numeric columns keep exact amounts (18 digits, 2 decimals)
    recharge_wallet = db.Column(db.Numeric(18, 2), default=Decimal('0'), nullable=False)
    balance_wallet = db.Column(db.Numeric(18, 2), default=Decimal('0'), nullable=False)
    total_earnings = db.Column(db.Numeric(18, 2), default=Decimal('0'), nullable=False)
    total_withdrawals = db.Column(db.Numeric(18, 2), default=Decimal('0'), nullable=False)
    income_today = db.Column(db.Numeric(18, 2), default=Decimal('0'), nullable=False)
    income_yesterday = db.Column(db.Numeric(18, 2), default=Decimal('0'), nullable=False)
    loss_today = db.Column(db.Numeric(18, 2), default=Decimal('0'), nullable=False)
    loss_total = db.Column(db.Numeric(18, 2), default=Decimal('0'), nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    BALANCE_FIELDS = (
        'recharge_wallet', 'balance_wallet', 'total_earnings', 'total_withdrawals',
        'income_today', 'income_yesterday', 'loss_today', 'loss_total',
    )

    def to_dict(self):
        # Negative values never leave the boundary
        return {name: max(Decimal(getattr(self, name) or 0), Decimal('0')) for name in self.BALANCE_FIELDS}

# ==========================================
# 4. Product catalog
# ==========================================
class Product(db.Model):
    """Catalog item sold to consumers."""
    __tablename__ = 'products'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    price = db.Column(db.Numeric(18, 2), nullable=False)
    description = db.Column(db.String(500), default='')
    image_url = db.Column(db.String(500), default='')
    validity_days = db.Column(db.Integer)
    validate_date = db.Column(db.DateTime)  # legacy absolute expiry
    earn_amount = db.Column(db.Numeric(18, 2), default=Decimal('0'), nullable=False)
    total_earning = db.Column(db.Numeric(18, 2), default=Decimal('0'), nullable=False)  # 0 = unlimited
    deleted = db.Column(db.Boolean, default=False, nullable=False)
    deleted_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def resolve_validity_days(self, now, default=None):
        """Explicit validity_days first, then days left until the legacy validate_date, then the default."""
        if self.validity_days and self.validity_days > 0:
            return int(self.validity_days)
        if self.validate_date:
            seconds = (self.validate_date - now).total_seconds()
            return max(0, math.ceil(seconds / 86400))
        return default or default_validity_days()

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'price': Decimal(self.price),
            'description': self.description or '',
            'image_url': self.image_url or '',
            'validity_days': self.validity_days,
            'validate_date': _iso(self.validate_date),
            'earn_amount': Decimal(self.earn_amount or 0),
            'total_earning': Decimal(self.total_earning or 0),
        }

# ==========================================
# 5. Purchased products
# ==========================================
class UserProduct(db.Model):
    """One purchase of a product; carries the recurring earn-window anchor."""
    __tablename__ = 'user_products'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    product = db.relationship('Product')

    # Snapshot of the catalog item at purchase time
    product_name = db.Column(db.String(150))
    product_price = db.Column(db.Numeric(18, 2))
    product_description = db.Column(db.String(500), default='')
    image_url = db.Column(db.String(500), default='')

    purchase_date = db.Column(db.DateTime, default=utcnow, nullable=False)
    status = db.Column(db.String(20), default='active', nullable=False)
    validity_days = db.Column(db.Integer, default=default_validity_days)
    validate_date = db.Column(db.DateTime)  # legacy absolute expiry
    earn_amount = db.Column(db.Numeric(18, 2), default=Decimal('0'), nullable=False)
    max_earning = db.Column(db.Numeric(18, 2), default=Decimal('0'), nullable=False)  # 0 = unlimited

    earn_window_start_at = db.Column(db.DateTime)
    last_earn_attempt = db.Column(db.DateTime)  # legacy, not used for timing
    last_earn_claim_at = db.Column(db.DateTime)
    earn_last_missed_at = db.Column(db.DateTime)
    total_earnings = db.Column(db.Numeric(18, 2), default=Decimal('0'), nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    @property
    def window_anchor(self):
        """Start of the recurring earn window; rows written before the anchor existed fall back to the purchase date."""
        return self.earn_window_start_at or self.purchase_date

    @property
    def expires_at(self):
        if self.validate_date:
            return self.validate_date
        return self.purchase_date + timedelta(days=self.validity_days or default_validity_days())

    def is_expired(self, now):
        return now >= self.expires_at

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'product_name': self.product_name,
            'product_price': Decimal(self.product_price or 0),
            'product_description': self.product_description or '',
            'image_url': self.image_url or '',
            'purchase_date': _iso(self.purchase_date),
            'status': self.status,
            'validity_days': self.validity_days,
            'expires_at': _iso(self.expires_at),
            'earn_amount': Decimal(self.earn_amount or 0),
            'max_earning': Decimal(self.max_earning or 0),
            'earn_window_start_at': _iso(self.window_anchor),
            'total_earnings': Decimal(self.total_earnings or 0),
        }

# ==========================================
# 6. Transactions (Ledger)
# ==========================================
class Transaction(db.Model):
    """Append-only ledger event. Only the status changes after creation (admin action)."""
    __tablename__ = 'transactions'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    type = db.Column(db.String(40), nullable=False, index=True)  # recharge, withdraw, purchase, earn, ...
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    status = db.Column(db.String(20), default='pending', nullable=False)
    reference = db.Column(db.String(100))
    description = db.Column(db.String(200))

    # Type-specific fields
    vat_tax = db.Column(db.Numeric(18, 2))
    net_amount = db.Column(db.Numeric(18, 2))
    proof_image_url = db.Column(db.String(500))
    payment_method = db.Column(db.String(50))
    payment_name = db.Column(db.String(150))
    payment_number = db.Column(db.String(50))
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'))
    user_product_id = db.Column(db.Integer, db.ForeignKey('user_products.id'))
    referred_user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    vip_level = db.Column(db.Integer)

    admin_note = db.Column(db.String(500))
    processed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    def to_dict(self):
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'type': self.type,
            'amount': Decimal(self.amount),
            'status': self.status,
            'reference': self.reference,
            'description': self.description,
            'created_at': _iso(self.created_at),
        }
        optional = {
            'vat_tax': self.vat_tax,
            'net_amount': self.net_amount,
            'proof_image_url': self.proof_image_url,
            'payment_method': self.payment_method,
            'payment_name': self.payment_name,
            'payment_number': self.payment_number,
            'product_id': self.product_id,
            'user_product_id': self.user_product_id,
            'referred_user_id': self.referred_user_id,
            'vip_level': self.vip_level,
            'admin_note': self.admin_note,
            'processed_at': _iso(self.processed_at),
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

# ==========================================
# 7. Audit Logs
# ==========================================
class AuditLog(db.Model):
    """Trail of admin actions (approvals, rejections, catalog and settings changes)."""
    __tablename__ = 'audit_logs'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    action = db.Column(db.String(100), nullable=False)
    details = db.Column(db.String(500))
    ip_address = db.Column(db.String(50))
    timestamp = db.Column(db.DateTime, default=utcnow)


def _iso(value):
    return value.isoformat() if value else None
