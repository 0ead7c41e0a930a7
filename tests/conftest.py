import os

os.environ['FLASK_CONFIG'] = 'testing'

import itertools
from datetime import datetime
from decimal import Decimal

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from extensions import db
from models import User, Wallet, Product, UserProduct

# Wednesday, midday UTC
T0 = datetime(2024, 1, 10, 12, 0, 0)
SATURDAY = datetime(2024, 1, 13, 10, 0, 0)

PASSWORD = 'secret'
PASSWORD_HASH = generate_password_hash(PASSWORD, method='pbkdf2:sha256')

_PURCHASE_DATE = object()


class FixedRoll:
    """Stand-in for random.Random with a fixed draw."""

    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make(name=None, phone=None, role='consumer', is_active=True, referred_by=None,
              referral_code=None, created_at=T0, first_purchase_at=None, total_referrals=0,
              vip_level=0, nid=None, with_wallet=True, **balances):
        n = next(counter)
        user = User(
            name=name or f'User {n}',
            phone=phone or f'01700{n:06d}',
            nid=nid,
            password=PASSWORD_HASH,
            role=role,
            is_active=is_active,
            referral_code=referral_code or f'CODE{n:04d}',
            referred_by=referred_by,
            total_referrals=total_referrals,
            vip_level=vip_level,
            created_at=created_at,
            first_purchase_at=first_purchase_at,
        )
        db.session.add(user)
        db.session.flush()
        if with_wallet:
            values = {name: Decimal(str(balances.get(name, 0))) for name in Wallet.BALANCE_FIELDS}
            db.session.add(Wallet(user_id=user.id, **values))
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_product(app):
    def _make(name='Gold', price=100, earn_amount=10, total_earning=0, validity_days=45,
              validate_date=None, deleted=False):
        product = Product(
            name=name,
            price=Decimal(str(price)),
            validity_days=validity_days,
            validate_date=validate_date,
            earn_amount=Decimal(str(earn_amount)),
            total_earning=Decimal(str(total_earning)),
            deleted=deleted,
        )
        db.session.add(product)
        db.session.commit()
        return product

    return _make


@pytest.fixture
def make_user_product(app, make_product):
    def _make(user, product=None, purchase_date=T0, earn_window_start_at=_PURCHASE_DATE,
              earn_amount=10, max_earning=0, validity_days=45, validate_date=None,
              total_earnings=0, status='active'):
        product = product or make_product(earn_amount=earn_amount, total_earning=max_earning)
        if earn_window_start_at is _PURCHASE_DATE:
            earn_window_start_at = purchase_date
        user_product = UserProduct(
            user_id=user.id,
            product_id=product.id,
            product_name=product.name,
            product_price=product.price,
            purchase_date=purchase_date,
            status=status,
            validity_days=validity_days,
            validate_date=validate_date,
            earn_amount=Decimal(str(earn_amount)),
            max_earning=Decimal(str(max_earning)),
            earn_window_start_at=earn_window_start_at,
            total_earnings=Decimal(str(total_earnings)),
        )
        db.session.add(user_product)
        db.session.commit()
        return user_product

    return _make


@pytest.fixture
def login(client):
    def _login(user):
        response = client.post('/login', json={'identifier': user.phone, 'password': PASSWORD})
        assert response.status_code == 200, response.get_json()
        return response

    return _login


def wallet_of(user_id):
    return Wallet.query.filter_by(user_id=user_id).first()
