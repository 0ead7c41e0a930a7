"""
VIP tier engine.

The tier is derived from the referral count alone. Each tier unlocks a weekly
and a monthly wallet credit, each with its own cooldown.
"""

import math
import logging
from datetime import timedelta
from decimal import Decimal
from extensions import db
from models import User
from services import clock, ledger
from services.errors import NotFound, IneligibleForReward, RewardAlreadyClaimed, ConcurrencyConflict
from services.results import service_operation

logger = logging.getLogger(__name__)

# (minimum referrals, level), highest first
VIP_THRESHOLDS = ((20, 2), (5, 1))

VIP_LEVEL_NAMES = {0: 'Regular', 1: 'VIP 1', 2: 'VIP 2'}

VIP_REWARDS = {
    0: {'weekly': Decimal('0'), 'monthly': Decimal('0')},
    1: {'weekly': Decimal('50'), 'monthly': Decimal('0')},
    2: {'weekly': Decimal('50'), 'monthly': Decimal('2000')},
}

REWARD_PERIODS = {
    'weekly': timedelta(days=7),
    'monthly': timedelta(days=30),
}

_LAST_REWARD_COLUMNS = {
    'weekly': 'last_weekly_reward',
    'monthly': 'last_monthly_reward',
}


def vip_level_for(referral_count):
    count = max(0, int(referral_count or 0))
    for threshold, level in VIP_THRESHOLDS:
        if count >= threshold:
            return level
    return 0


def vip_level_name(level):
    return VIP_LEVEL_NAMES.get(level, VIP_LEVEL_NAMES[0])


def _load_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound('User not found')
    return user


def sync_vip_level(user, now=None):
    """Recompute the stored level from total_referrals; writes only when it changed."""
    old_level = user.vip_level or 0
    new_level = vip_level_for(user.total_referrals)
    changed = new_level != old_level
    if changed:
        user.vip_level = new_level
        user.vip_level_updated_at = now or clock.utcnow()
        logger.info(f"User {user.id} VIP level {old_level} -> {new_level}")
    return {
        'old_level': old_level,
        'new_level': new_level,
        'referral_count': user.total_referrals or 0,
        'changed': changed,
    }


@service_operation
def update_vip_level(user_id):
    return sync_vip_level(_load_user(user_id))


def _days_until(moment, now):
    return max(0, math.ceil((moment - now).total_seconds() / 86400))


@service_operation
def get_vip_status(user_id, now=None):
    now = now or clock.utcnow()
    user = _load_user(user_id)
    level = sync_vip_level(user, now)['new_level']
    rewards = VIP_REWARDS[level]

    status = {
        'level': level,
        'level_name': vip_level_name(level),
        'referral_count': user.total_referrals or 0,
        'weekly_reward': rewards['weekly'],
        'monthly_reward': rewards['monthly'],
    }
    for reward_type, period in REWARD_PERIODS.items():
        last = getattr(user, _LAST_REWARD_COLUMNS[reward_type])
        next_at = last + period if last else None
        status[f'last_{reward_type}_reward'] = last.isoformat() if last else None
        status[f'next_{reward_type}_at'] = next_at.isoformat() if next_at else None
        status[f'can_claim_{reward_type}'] = rewards[reward_type] > 0 and (next_at is None or now >= next_at)
        status[f'days_until_next_{reward_type}'] = _days_until(next_at, now) if next_at else 0
    return status


def _distribute(user_id, reward_type, now):
    now = now or clock.utcnow()
    user = _load_user(user_id)
    level = sync_vip_level(user, now)['new_level']
    amount = VIP_REWARDS[level][reward_type]
    if amount <= 0:
        raise IneligibleForReward(
            f"{vip_level_name(level)} members are not eligible for {reward_type} rewards.",
            vip_level=level,
        )

    field = _LAST_REWARD_COLUMNS[reward_type]
    column = getattr(User, field)
    last = getattr(user, field)
    period = REWARD_PERIODS[reward_type]
    if last is not None and now - last < period:
        days = _days_until(last + period, now)
        raise RewardAlreadyClaimed(
            f"{reward_type.capitalize()} reward already received. {days} days remaining.",
            days_remaining=days,
        )

    db.session.flush()
    claim = User.query.filter(User.id == user_id, column.is_(None) if last is None else column == last)
    if not claim.update({column: now}, synchronize_session=False):
        logger.warning(f"User {user_id}: concurrent {reward_type} VIP reward rejected")
        raise ConcurrencyConflict()

    ledger.credit(user_id, balance_wallet=amount, total_earnings=amount, income_today=amount)
    ledger.record_transaction(
        user_id, f'vip_{reward_type}_reward', amount,
        status='completed',
        reference_prefix=f'VIP_{reward_type.upper()}',
        now=now,
        description=f"{vip_level_name(level)} {reward_type} reward",
        vip_level=level,
    )
    logger.info(f"User {user_id} received {reward_type} VIP reward of {amount}")
    return {'amount': amount, 'vip_level': level, 'reward_type': reward_type}


@service_operation
def distribute_weekly_reward(user_id, now=None):
    return _distribute(user_id, 'weekly', now)


@service_operation
def distribute_monthly_reward(user_id, now=None):
    return _distribute(user_id, 'monthly', now)


def claim_vip_rewards(user_id, now=None):
    """Try both rewards; each is its own transaction and result."""
    return {
        'weekly': distribute_weekly_reward(user_id, now=now),
        'monthly': distribute_monthly_reward(user_id, now=now),
    }
