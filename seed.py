"""
Seed script for the initial database contents.

1. Creates every table defined in models.py.
2. Creates the admin account from environment variables.
3. Writes the default system settings.
4. Creates the starter products when the catalog is empty.
"""

import os
from decimal import Decimal
from app import create_app
from extensions import db
from models import User, Product, SystemSetting
from services.ledger import ensure_wallet
from utils import set_setting
from werkzeug.security import generate_password_hash

app = create_app(os.environ.get('FLASK_CONFIG', 'default'))

DEFAULT_SETTINGS = {
    'referral_bonus': '200',
    'currency': 'USD',
    'bkash_number': '',
    'bkash_qr_code_id': '',
    'support_number': '+601121222669',
}

# Earn amounts start at zero; set them with POST /admin/products/<id>
DEFAULT_PRODUCTS = [
    {'name': 'Product 1', 'price': Decimal('100'), 'validity_days': 45},
    {'name': 'Product 2', 'price': Decimal('200'), 'validity_days': 45},
]

def seed_database():
    with app.app_context():
        db.create_all()
        print("Database tables created.")

        # Admin (credentials from the environment)
        admin_phone = os.environ.get('ADMIN_PHONE', '0000000000')
        admin_pass = os.environ.get('ADMIN_PASSWORD')

        if not admin_pass:
            print("Warning: ADMIN_PASSWORD is not set. Admin was not created.")
        elif not User.query.filter_by(phone=admin_phone).first():
            admin = User(
                name='Admin',
                phone=admin_phone,
                password=generate_password_hash(admin_pass, method='pbkdf2:sha256'),
                role='admin',
                is_active=True,
                referral_code='ADMIN001',
            )
            db.session.add(admin)
            db.session.flush()
            ensure_wallet(admin.id)
            print(f"Admin created: {admin_phone}")

        # Settings
        for key, value in DEFAULT_SETTINGS.items():
            if not db.session.get(SystemSetting, key):
                set_setting(key, value)

        # Catalog
        if not Product.query.first():
            for data in DEFAULT_PRODUCTS:
                db.session.add(Product(**data))
                print(f"   Product created: {data['name']}")

        db.session.commit()
        print("\nDatabase seeding completed successfully!")

if __name__ == '__main__':
    seed_database()
