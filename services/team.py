"""Referral team statistics."""

from datetime import timedelta
from decimal import Decimal
from sqlalchemy import func
from extensions import db
from models import User, UserProduct, Transaction
from services import clock
from services.results import service_operation


def _referrals(user_id):
    return User.query.filter_by(referred_by=user_id).order_by(User.created_at.desc()).all()


def _purchased_ids(user_ids):
    if not user_ids:
        return set()
    rows = db.session.query(UserProduct.user_id).filter(UserProduct.user_id.in_(user_ids)).distinct()
    return {row[0] for row in rows}


def _approved_recharges(user_ids):
    return Transaction.query.filter(
        Transaction.user_id.in_(user_ids),
        Transaction.type == 'recharge',
        Transaction.status == 'approved',
    )


def _recharged_ids(user_ids):
    if not user_ids:
        return set()
    rows = _approved_recharges(user_ids).with_entities(Transaction.user_id).distinct()
    return {row[0] for row in rows}


def _recharge_total(user_ids, start=None, end=None):
    if not user_ids:
        return Decimal('0')
    query = _approved_recharges(user_ids)
    if start is not None:
        query = query.filter(Transaction.created_at >= start)
    if end is not None:
        query = query.filter(Transaction.created_at < end)
    total = query.with_entities(func.coalesce(func.sum(Transaction.amount), 0)).scalar()
    return Decimal(str(total or 0))


@service_operation
def get_referral_statistics(user_id):
    ids = [u.id for u in _referrals(user_id)]
    purchased = len(_purchased_ids(ids))
    return {
        'total_referrals': len(ids),
        'purchased_count': purchased,
        'not_purchased_count': len(ids) - purchased,
    }


@service_operation
def get_team_summary(user_id, now=None):
    now = now or clock.utcnow()
    members = _referrals(user_id)
    ids = [m.id for m in members]
    purchased = _purchased_ids(ids)
    recharged = _recharged_ids(ids)

    today = clock.start_of_day(now)
    yesterday = clock.start_of_day(today - timedelta(microseconds=1))
    month = clock.start_of_month(now)
    last_month = clock.start_of_previous_month(now)

    tiers = {'B': [], 'C': [], 'D': []}
    for member in members:
        entry = {
            'id': member.id,
            'name': member.name,
            'phone': member.phone,
            'created_at': member.created_at.isoformat() if member.created_at else None,
            'purchased': member.id in purchased,
            'recharged': member.id in recharged,
        }
        if entry['purchased']:
            tiers['B'].append(entry)
        elif entry['recharged']:
            tiers['C'].append(entry)
        else:
            tiers['D'].append(entry)

    return {
        'team_size': len(members),
        'cumulative_recharge': _recharge_total(ids),
        'new_members_today': sum(1 for m in members if m.created_at and m.created_at >= today),
        'new_members_yesterday': sum(1 for m in members if m.created_at and yesterday <= m.created_at < today),
        'recharge_today': _recharge_total(ids, start=today),
        'recharge_yesterday': _recharge_total(ids, start=yesterday, end=today),
        'recharge_this_month': _recharge_total(ids, start=month),
        'recharge_last_month': _recharge_total(ids, start=last_month, end=month),
        'tiers': tiers,
    }
