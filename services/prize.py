"""
Prize smash eligibility.

A user may smash once per local calendar day, after at least three of their
referrals have both registered and made their first purchase that same day.
"""

import random
import logging
from decimal import Decimal
from flask import current_app
from sqlalchemy import or_
from extensions import db
from models import User
from services import clock, ledger
from services.errors import NotFound, PrizeUnavailable
from services.results import service_operation

logger = logging.getLogger(__name__)

# (amount, weight); weights are percentages
PRIZE_TABLE = (
    (5, 30),
    (10, 25),
    (15, 20),
    (20, 15),
    (25, 5),
    (0, 5),
)

if sum(weight for _, weight in PRIZE_TABLE) != 100:
    raise ValueError('Prize weights must sum to 100')


def draw_prize(rng=None):
    """Uniform roll in [0, 100) mapped onto the cumulative weight buckets."""
    roll = (rng or random).random() * 100
    cumulative = 0
    for amount, weight in PRIZE_TABLE:
        cumulative += weight
        if roll < cumulative:
            return Decimal(amount)
    return Decimal(PRIZE_TABLE[-1][0])


def count_successful_referrals_today(referrer_id, now=None):
    now = now or clock.utcnow()
    midnight = clock.start_of_day(now)
    next_midnight = clock.start_of_next_day(now)
    return User.query.filter(
        User.referred_by == referrer_id,
        User.created_at >= midnight,
        User.created_at < next_midnight,
        User.first_purchase_at >= midnight,
        User.first_purchase_at < next_midnight,
    ).count()


def _eligibility(user, now):
    midnight = clock.start_of_day(now)
    count = count_successful_referrals_today(user.id, now)
    required = current_app.config['PRIZE_REFERRAL_THRESHOLD']
    smashed_today = user.last_egg_smash is not None and user.last_egg_smash >= midnight
    has_enough = count >= required
    cooldown = clock.breakdown(clock.start_of_next_day(now) - now) if smashed_today else None
    return {
        'successful_referrals_today': count,
        'required_referrals': required,
        'has_enough_referrals': has_enough,
        'smashed_today': smashed_today,
        'can_smash': has_enough and not smashed_today,
        'cooldown_remaining': cooldown,
    }


def _load_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound('User not found')
    return user


@service_operation
def get_prize_eligibility(user_id, now=None):
    return _eligibility(_load_user(user_id), now or clock.utcnow())


@service_operation
def smash_prize(user_id, now=None, rng=None):
    now = now or clock.utcnow()
    user = _load_user(user_id)
    eligibility = _eligibility(user, now)

    if not eligibility['has_enough_referrals']:
        raise PrizeUnavailable(
            f"You need {eligibility['required_referrals']} successful referrals today to smash. "
            f"Current: {eligibility['successful_referrals_today']}",
            successful_referrals_today=eligibility['successful_referrals_today'],
        )
    if eligibility['smashed_today']:
        raise PrizeUnavailable(
            'You have already smashed today. Come back after midnight.',
            cooldown_remaining=eligibility['cooldown_remaining'],
        )

    midnight = clock.start_of_day(now)
    claimed = User.query.filter(
        User.id == user_id,
        or_(User.last_egg_smash.is_(None), User.last_egg_smash < midnight),
    ).update({User.last_egg_smash: now}, synchronize_session=False)
    if not claimed:
        raise PrizeUnavailable('You have already smashed today. Come back after midnight.')

    amount = draw_prize(rng)
    if amount > 0:
        ledger.credit(user_id, balance_wallet=amount)
        ledger.record_transaction(
            user_id, 'prize_reward', amount,
            status='completed',
            reference_prefix='PRIZE',
            now=now,
            description='Egg smash prize',
        )
    logger.info(f"User {user_id} smashed the egg: {amount}")
    return {'amount': amount, 'type': 'bonus' if amount > 0 else 'try again'}
