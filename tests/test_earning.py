from datetime import timedelta
from decimal import Decimal

from conftest import T0, wallet_of
from extensions import db
from models import UserProduct, Transaction
from services.earning import compute_window, claim_earn_window, get_earn_window_status, advance_anchor


# --- Window computation ---

def test_window_before_anchor_is_cooldown():
    window = compute_window(T0, T0 - timedelta(hours=2))
    assert window['status'] == 'cooldown'
    assert not window['can_earn']
    assert window['remaining']['hours'] == 2
    assert window['next_window_at'] == T0


def test_window_is_open_for_three_hours_inclusive():
    assert compute_window(T0, T0)['status'] == 'window'
    at_end = compute_window(T0, T0 + timedelta(hours=3))
    assert at_end['status'] == 'window'
    assert at_end['remaining']['total_seconds'] == 0


def test_window_missed_points_to_next_cycle():
    window = compute_window(T0, T0 + timedelta(hours=3, seconds=1))
    assert window['status'] == 'missed'
    assert window['next_window_at'] == T0 + timedelta(hours=24)
    assert window['remaining']['hours'] == 20


def test_window_skips_whole_cycles():
    window = compute_window(T0, T0 + timedelta(hours=50))
    assert window['window_start'] == T0 + timedelta(hours=48)
    assert window['status'] == 'window'


def test_window_start_is_monotonic():
    previous = None
    for minutes in range(0, 100 * 60, 17):
        now = T0 + timedelta(minutes=minutes)
        start = compute_window(T0, now)['window_start']
        assert start <= now < start + timedelta(hours=24)
        if previous is not None:
            assert start >= previous
        previous = start


# --- Claims ---

def test_claims_stop_at_lifetime_cap(make_user, make_user_product):
    user = make_user()
    up = make_user_product(user, earn_amount=10, max_earning=20)

    first = claim_earn_window(user.id, up.id, now=T0 + timedelta(hours=3))
    assert first.ok
    assert first.value['amount_credited'] == Decimal('10')

    second = claim_earn_window(user.id, up.id, now=T0 + timedelta(hours=25))
    assert second.ok
    assert second.value['total_earnings'] == Decimal('20')

    third = claim_earn_window(user.id, up.id, now=T0 + timedelta(hours=49))
    assert third.kind == 'MaxEarningReached'

    wallet = wallet_of(user.id)
    assert wallet.balance_wallet == Decimal('20')
    assert wallet.total_earnings == Decimal('20')
    assert wallet.income_today == Decimal('20')
    assert db.session.get(UserProduct, up.id).total_earnings == Decimal('20')


def test_second_claim_in_same_window_is_refused(make_user, make_user_product):
    user = make_user()
    up = make_user_product(user, earn_amount=10)

    assert claim_earn_window(user.id, up.id, now=T0 + timedelta(minutes=10)).ok
    again = claim_earn_window(user.id, up.id, now=T0 + timedelta(minutes=20))

    assert again.kind == 'EarningNotAvailable'
    assert again.error.details['remaining']['hours'] == 23
    assert wallet_of(user.id).balance_wallet == Decimal('10')
    assert Transaction.query.filter_by(user_id=user.id, type='earn').count() == 1


def test_claim_against_stale_anchor_conflicts(make_user, make_user_product):
    user = make_user()
    up = make_user_product(user, earn_amount=10)

    loaded = db.session.get(UserProduct, up.id)
    assert loaded.earn_window_start_at == T0
    # Another session claims the window first
    UserProduct.query.filter_by(id=up.id).update(
        {UserProduct.earn_window_start_at: T0 + timedelta(hours=24)}, synchronize_session=False
    )

    result = claim_earn_window(user.id, up.id, now=T0 + timedelta(hours=1))
    assert result.kind == 'ConcurrencyConflict'
    assert wallet_of(user.id).balance_wallet == Decimal('0')


def test_advance_anchor_requires_expected_value(make_user, make_user_product):
    user = make_user()
    up = make_user_product(user)
    loaded = db.session.get(UserProduct, up.id)

    assert advance_anchor(loaded, T0 + timedelta(hours=24)) == 1
    assert advance_anchor(loaded, T0 + timedelta(hours=24)) == 0
    db.session.rollback()


def test_missed_window_moves_anchor(make_user, make_user_product):
    user = make_user()
    up = make_user_product(user)

    result = claim_earn_window(user.id, up.id, now=T0 + timedelta(hours=4))
    assert result.kind == 'EarningWindowMissed'
    assert result.error.details['remaining']['hours'] == 20

    stored = db.session.get(UserProduct, up.id)
    assert stored.earn_window_start_at == T0 + timedelta(hours=24)
    assert stored.earn_last_missed_at == T0 + timedelta(hours=4)
    assert wallet_of(user.id).balance_wallet == Decimal('0')

    assert claim_earn_window(user.id, up.id, now=T0 + timedelta(hours=24, minutes=5)).ok


def test_expired_product_rejects_claims(make_user, make_user_product):
    user = make_user()
    up = make_user_product(user, validity_days=1)

    result = claim_earn_window(user.id, up.id, now=T0 + timedelta(hours=24, minutes=30))
    assert result.kind == 'ProductExpired'
    assert db.session.get(UserProduct, up.id).status == 'expired'


def test_legacy_validate_date_controls_expiry(make_user, make_user_product):
    user = make_user()
    up = make_user_product(user, validate_date=T0 + timedelta(hours=12))
    assert claim_earn_window(user.id, up.id, now=T0 + timedelta(hours=12)).kind == 'ProductExpired'


def test_zero_earn_amount_is_unavailable(make_user, make_user_product):
    user = make_user()
    up = make_user_product(user, earn_amount=0)
    assert claim_earn_window(user.id, up.id, now=T0).kind == 'ProductUnavailable'


def test_claim_for_someone_elses_product_is_not_found(make_user, make_user_product):
    owner, other = make_user(), make_user()
    up = make_user_product(owner)
    assert claim_earn_window(other.id, up.id, now=T0).kind == 'NotFound'
    assert claim_earn_window(owner.id, 9999, now=T0).kind == 'NotFound'


def test_legacy_product_anchors_on_purchase_date(make_user, make_user_product):
    user = make_user()
    up = make_user_product(user, earn_window_start_at=None)

    result = claim_earn_window(user.id, up.id, now=T0 + timedelta(hours=1))
    assert result.ok
    assert db.session.get(UserProduct, up.id).earn_window_start_at == T0 + timedelta(hours=24)


def test_claim_records_earn_transaction(make_user, make_user_product):
    user = make_user()
    up = make_user_product(user, earn_amount=7.5)
    claim_earn_window(user.id, up.id, now=T0 + timedelta(minutes=1))

    tx = Transaction.query.filter_by(user_id=user.id, type='earn').one()
    assert tx.amount == Decimal('7.50')
    assert tx.status == 'completed'
    assert tx.reference.startswith('EARN_')
    assert tx.user_product_id == up.id


def test_status_reports_remaining_time(make_user, make_user_product):
    user = make_user()
    up = make_user_product(user)

    status = get_earn_window_status(up.id, now=T0 + timedelta(hours=1)).unwrap()
    assert status['status'] == 'window'
    assert status['can_earn'] is True
    assert status['remaining'] == {'hours': 2, 'minutes': 0, 'seconds': 0, 'total_seconds': 7200}
    assert status['remaining_text'] == '2h 0m 0s'

    assert get_earn_window_status(9999).kind == 'NotFound'


def test_status_of_expired_product_cannot_earn(make_user, make_user_product):
    user = make_user()
    up = make_user_product(user, validity_days=1)

    status = get_earn_window_status(up.id, now=T0 + timedelta(hours=25)).unwrap()
    assert status['status'] == 'window'
    assert status['expired'] is True
    assert status['can_earn'] is False
    assert claim_earn_window(user.id, up.id, now=T0 + timedelta(hours=25)).kind == 'ProductExpired'


def test_missing_validity_uses_configured_default(app, make_user, make_user_product):
    app.config['DEFAULT_VALIDITY_DAYS'] = 2
    user = make_user()
    up = make_user_product(user, validity_days=None)

    stored = db.session.get(UserProduct, up.id)
    assert stored.expires_at == T0 + timedelta(days=2)
