"""
Earning window scheduler.

A purchased product pays `earn_amount` once per 24-hour cycle, and only while
the 3-hour window at the start of the cycle is open. The cycle is anchored on
`UserProduct.window_anchor`, which moves forward by one cycle after each claim
or missed window.
"""

import logging
from datetime import timedelta
from decimal import Decimal
from extensions import db
from models import UserProduct
from services import clock, ledger
from services.errors import (
    NotFound, ProductExpired, ProductUnavailable, EarningNotAvailable,
    EarningWindowMissed, MaxEarningReached, ConcurrencyConflict,
)
from services.results import service_operation

logger = logging.getLogger(__name__)

EARN_WINDOW = timedelta(hours=3)
EARN_CYCLE = timedelta(hours=24)

COOLDOWN = 'cooldown'
WINDOW_OPEN = 'window'
MISSED = 'missed'


def compute_window(anchor, now):
    """Locate `now` in the recurring cycle that starts at `anchor`."""
    cycles = max(timedelta(0), now - anchor) // EARN_CYCLE
    window_start = anchor + cycles * EARN_CYCLE
    window_end = window_start + EARN_WINDOW
    next_window_at = window_start + EARN_CYCLE

    if now < window_start:
        status, remaining, next_window_at = COOLDOWN, window_start - now, window_start
    elif now <= window_end:
        status, remaining = WINDOW_OPEN, window_end - now
    else:
        status, remaining = MISSED, next_window_at - now

    return {
        'status': status,
        'can_earn': status == WINDOW_OPEN,
        'remaining': clock.breakdown(remaining),
        'window_start': window_start,
        'window_end': window_end,
        'next_window_at': next_window_at,
    }


def window_status(user_product, now):
    """Serializable window status of a loaded UserProduct."""
    window = compute_window(user_product.window_anchor, now)
    window['window_start'] = window['window_start'].isoformat()
    window['window_end'] = window['window_end'].isoformat()
    window['next_window_at'] = window['next_window_at'].isoformat()
    window['remaining_text'] = clock.format_breakdown(window['remaining'])
    window['expired'] = user_product.is_expired(now)
    if window['expired']:
        window['can_earn'] = False
    return window


def advance_anchor(user_product, new_anchor, values=None):
    """
    Move the window anchor forward, but only if it still holds the value read
    into `user_product`. Returns the number of rows changed (0 or 1).
    """
    query = UserProduct.query.filter(UserProduct.id == user_product.id)
    if user_product.earn_window_start_at is None:
        query = query.filter(UserProduct.earn_window_start_at.is_(None))
    else:
        query = query.filter(UserProduct.earn_window_start_at == user_product.earn_window_start_at)
    values = dict(values or {})
    values[UserProduct.earn_window_start_at] = new_anchor
    values[UserProduct.updated_at] = clock.utcnow()
    return query.update(values, synchronize_session=False)


@service_operation
def get_earn_window_status(user_product_id, now=None):
    now = now or clock.utcnow()
    user_product = db.session.get(UserProduct, user_product_id)
    if user_product is None:
        raise NotFound('Product not found')
    return window_status(user_product, now)


@service_operation
def claim_earn_window(user_id, user_product_id, now=None):
    now = now or clock.utcnow()
    user_product = db.session.get(UserProduct, user_product_id)
    if user_product is None or user_product.user_id != user_id:
        raise NotFound('Product not found')

    if user_product.is_expired(now):
        if user_product.status != 'expired':
            user_product.status = 'expired'
            db.session.commit()
        raise ProductExpired('This product has expired. You cannot earn from expired products.')

    amount = Decimal(user_product.earn_amount or 0)
    if amount <= 0:
        raise ProductUnavailable('This product has no earning amount configured.')

    total = Decimal(user_product.total_earnings or 0)
    cap = Decimal(user_product.max_earning or 0)
    if cap > 0 and total + amount > cap:
        raise MaxEarningReached(
            f"Maximum earning of {cap:.2f} reached for this product.",
            total_earnings=total, max_earning=cap,
        )

    window = compute_window(user_product.window_anchor, now)
    remaining = window['remaining']

    if window['status'] == COOLDOWN:
        raise EarningNotAvailable(
            f"Next earning window opens in {clock.format_breakdown(remaining)}.",
            remaining=remaining,
        )

    if window['status'] == MISSED:
        advanced = advance_anchor(user_product, window['next_window_at'],
                                  {UserProduct.earn_last_missed_at: now})
        # The skipped cycle is recorded even though the claim itself fails
        db.session.commit()
        if advanced:
            logger.info(f"User product {user_product_id}: window missed, next at {window['next_window_at']}")
        raise EarningWindowMissed(
            f"You missed the 3-hour earning window. Next window opens in {clock.format_breakdown(remaining)}.",
            remaining=remaining,
        )

    claimed = advance_anchor(user_product, window['next_window_at'], {
        UserProduct.total_earnings: UserProduct.total_earnings + amount,
        UserProduct.last_earn_claim_at: now,
    })
    if not claimed:
        logger.warning(f"User product {user_product_id}: concurrent earn claim rejected")
        raise ConcurrencyConflict()

    ledger.credit(user_id, balance_wallet=amount, total_earnings=amount, income_today=amount)
    ledger.record_transaction(
        user_id, 'earn', amount,
        status='completed',
        reference_prefix='EARN',
        now=now,
        description=f"Earning from {user_product.product_name}",
        product_id=user_product.product_id,
        user_product_id=user_product.id,
    )
    logger.info(f"User {user_id} earned {amount} from user product {user_product_id}")
    return {
        'amount_credited': amount,
        'next_window_at': window['next_window_at'].isoformat(),
        'total_earnings': total + amount,
    }
