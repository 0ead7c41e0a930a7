from datetime import timedelta
from decimal import Decimal

from conftest import T0
from extensions import db
from models import Transaction
from services.team import get_referral_statistics, get_team_summary


def recharge(user, amount, created_at, status='approved'):
    db.session.add(Transaction(user_id=user.id, type='recharge', amount=Decimal(amount),
                               status=status, created_at=created_at))
    db.session.commit()


def test_referral_statistics(make_user, make_user_product):
    leader = make_user()
    buyer = make_user(referred_by=leader.id)
    make_user(referred_by=leader.id)
    make_user_product(buyer)
    make_user_product(buyer)

    assert get_referral_statistics(leader.id).unwrap() == {
        'total_referrals': 2, 'purchased_count': 1, 'not_purchased_count': 1,
    }


def test_team_summary_tiers_and_totals(make_user, make_user_product):
    leader = make_user()
    buyer = make_user(referred_by=leader.id, created_at=T0 - timedelta(hours=2))
    saver = make_user(referred_by=leader.id, created_at=T0 - timedelta(days=1))
    idle = make_user(referred_by=leader.id, created_at=T0 - timedelta(days=40))
    make_user_product(buyer)

    recharge(buyer, '100', T0 - timedelta(hours=1))
    recharge(saver, '50', T0 - timedelta(days=1))
    recharge(saver, '70', T0 - timedelta(days=20))
    recharge(idle, '999', T0, status='pending')

    summary = get_team_summary(leader.id, now=T0).unwrap()
    assert summary['team_size'] == 3
    assert [m['id'] for m in summary['tiers']['B']] == [buyer.id]
    assert [m['id'] for m in summary['tiers']['C']] == [saver.id]
    assert [m['id'] for m in summary['tiers']['D']] == [idle.id]
    assert summary['new_members_today'] == 1
    assert summary['new_members_yesterday'] == 1
    assert summary['recharge_today'] == Decimal('100')
    assert summary['recharge_yesterday'] == Decimal('50')
    assert summary['recharge_this_month'] == Decimal('150')
    assert summary['recharge_last_month'] == Decimal('70')
    assert summary['cumulative_recharge'] == Decimal('220')


def test_empty_team(make_user):
    leader = make_user()
    summary = get_team_summary(leader.id, now=T0).unwrap()
    assert summary['team_size'] == 0
    assert summary['cumulative_recharge'] == Decimal('0')
