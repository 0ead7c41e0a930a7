import random
import string
import logging
from decimal import Decimal, InvalidOperation
from flask import request, has_request_context
from extensions import db
from models import User, SystemSetting, AuditLog

logger = logging.getLogger(__name__)

REFERRAL_CODE_CHARS = string.ascii_uppercase + string.digits

# --- Accounts ---

def generate_referral_code():
    while True:
        code = ''.join(random.choices(REFERRAL_CODE_CHARS, k=8))
        if not User.query.filter_by(referral_code=code).first():
            return code

def log_admin_activity(admin_id, action, details):
    """Queue an audit entry on the current session; it is committed with the admin's operation."""
    ip_address = request.remote_addr if has_request_context() else None
    db.session.add(AuditLog(user_id=admin_id, action=action, details=details, ip_address=ip_address))
    logger.info(f"Admin {admin_id}: {action} - {details}")

# --- Settings ---

def get_setting(key, default=''):
    setting = db.session.get(SystemSetting, key)
    return setting.value if setting else default

def set_setting(key, value):
    setting = db.session.get(SystemSetting, key)
    if not setting:
        setting = SystemSetting(key=key)
        db.session.add(setting)
    setting.value = '' if value is None else str(value)

def get_decimal_setting(key, default):
    """Numeric setting; missing, unparsable or non-positive values fall back to the default."""
    raw = get_setting(key, None)
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError, TypeError):
        return default
    if not value.is_finite() or value <= 0:
        return default
    return value

# --- Amounts ---

def parse_amount(value):
    """Return a positive Decimal rounded to cents, or None if the input is not a valid amount."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount.quantize(Decimal('0.01'))
