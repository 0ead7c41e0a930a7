"""
Background tasks.
Daily income rollover and product expiry, run by the scheduler at local midnight.
"""

import logging
from decimal import Decimal
from extensions import db
from services.clock import utcnow

logger = logging.getLogger(__name__)

def run_daily_rollover(app):
    """Move today's income to yesterday and reset the daily counters for every wallet."""
    with app.app_context():
        from models import Wallet

        logger.info(f"--- Starting Daily Rollover: {utcnow()} ---")
        try:
            count = Wallet.query.update({
                Wallet.income_yesterday: Wallet.income_today,
                Wallet.income_today: Decimal('0'),
                Wallet.loss_today: Decimal('0'),
                Wallet.updated_at: utcnow(),
            }, synchronize_session=False)
            db.session.commit()
        except Exception as e:
            logger.error(f"Daily rollover failed: {e}")
            db.session.rollback()
            raise

        logger.info(f"--- Daily Rollover Completed. Wallets updated: {count} ---")
        return count

def expire_user_products(app, now=None):
    """Flag active user products whose validity has run out."""
    with app.app_context():
        from models import UserProduct

        now = now or utcnow()
        logger.info(f"--- Starting Product Expiry: {now} ---")

        count = 0
        for user_product in UserProduct.query.filter_by(status='active').all():
            try:
                if not user_product.is_expired(now):
                    continue
                user_product.status = 'expired'
                db.session.commit()
                count += 1
            except Exception as e:
                logger.error(f"Error expiring user product {user_product.id}: {e}")
                db.session.rollback()

        logger.info(f"--- Product Expiry Completed. Expired: {count} ---")
        return count
