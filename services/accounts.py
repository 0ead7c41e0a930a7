import logging
from werkzeug.security import generate_password_hash, check_password_hash
from extensions import db
from models import User
from services import clock, ledger
from services.errors import NotFound, AlreadyExists, InvalidCredentials, AccountLocked, ValidationError
from services.results import service_operation
from services.vip import sync_vip_level
from utils import generate_referral_code, log_admin_activity

logger = logging.getLogger(__name__)

LOGIN_FIELDS = {
    'phone': User.phone,
    'nid': User.nid,
    'passport': User.passport,
}


def find_referrer(code):
    """Resolve a referral code; a numeric code is also accepted as a plain user id."""
    code = (code or '').strip()
    if not code:
        return None
    referrer = User.query.filter_by(referral_code=code.upper()).first()
    if referrer is None and code.isdigit():
        referrer = db.session.get(User, int(code))
    return referrer


@service_operation
def register_user(name, phone, password, referral_code=None, nid=None, passport=None, now=None):
    now = now or clock.utcnow()
    name = (name or '').strip()
    phone = (phone or '').strip()
    if not name or not phone or not password:
        raise ValidationError('Name, phone and password are required')
    if User.query.filter_by(phone=phone).first():
        raise AlreadyExists('Phone number already registered')

    referrer = find_referrer(referral_code)
    if referral_code and referrer is None:
        logger.info(f"Registration with unknown referral code {referral_code!r}")

    user = User(
        name=name,
        phone=phone,
        nid=nid or None,
        passport=passport or None,
        password=generate_password_hash(password, method='pbkdf2:sha256'),
        role='consumer',
        is_active=True,
        referral_code=generate_referral_code(),
        referred_by=referrer.id if referrer else None,
        created_at=now,
    )
    db.session.add(user)
    db.session.flush()
    ledger.ensure_wallet(user.id)

    if referrer is not None:
        User.query.filter_by(id=referrer.id).update(
            {User.total_referrals: User.total_referrals + 1}, synchronize_session=False
        )
        db.session.refresh(referrer)
        sync_vip_level(referrer, now)

    logger.info(f"New user registered: {user.id} (referred by {user.referred_by})")
    return user.to_dict()


@service_operation
def authenticate(identifier, password, login_type='phone', now=None):
    """Check credentials and return the User; inactive consumers are refused."""
    column = LOGIN_FIELDS.get(login_type)
    identifier = (identifier or '').strip()
    if column is None or not identifier:
        raise InvalidCredentials()

    user = User.query.filter(column == identifier).first()
    if user is None or not check_password_hash(user.password, password or ''):
        raise InvalidCredentials()
    if not user.is_active and not user.is_admin:
        raise AccountLocked('Your account is not active. Please contact an administrator.')

    user.last_login = now or clock.utcnow()
    return user


@service_operation
def set_member_active(user_id, active, admin_id=None, now=None):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound('User not found')
    user.is_active = bool(active)
    if user.is_active and user.activated_at is None:
        user.activated_at = now or clock.utcnow()
    if admin_id:
        action = 'Activate Member' if user.is_active else 'Deactivate Member'
        log_admin_activity(admin_id, action, f'User #{user.id} {user.phone}')
    return user.to_dict()


def list_members():
    return [u.to_dict() for u in User.query.order_by(User.created_at.desc()).all()]
