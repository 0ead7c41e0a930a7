from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import T0, SATURDAY, wallet_of
from extensions import db
from models import Wallet, Transaction, AuditLog
from services import ledger
from services.errors import InsufficientBalance


def test_credit_creates_missing_wallet_with_amounts(make_user):
    user = make_user(with_wallet=False)
    ledger.credit(user.id, balance_wallet=Decimal('25'), total_earnings=Decimal('25'))
    db.session.commit()

    wallet = wallet_of(user.id)
    assert wallet.balance_wallet == Decimal('25')
    assert wallet.total_earnings == Decimal('25')
    assert wallet.total_withdrawals == Decimal('0')


def test_credit_increments_existing_wallet(make_user):
    user = make_user(balance_wallet=10)
    ledger.credit(user.id, balance_wallet=Decimal('5'))
    ledger.credit(user.id, balance_wallet=Decimal('2.5'))
    db.session.commit()
    assert wallet_of(user.id).balance_wallet == Decimal('17.50')


def test_debit_never_goes_negative(make_user):
    user = make_user(recharge_wallet=40)
    with pytest.raises(InsufficientBalance):
        ledger.debit(user.id, 'recharge_wallet', Decimal('40.01'))
    ledger.debit(user.id, 'recharge_wallet', Decimal('40'))
    db.session.commit()
    assert wallet_of(user.id).recharge_wallet == Decimal('0')


def test_wallet_view_clamps_negative_values(make_user):
    user = make_user()
    Wallet.query.filter_by(user_id=user.id).update({Wallet.loss_today: Decimal('-5')})
    db.session.commit()
    assert ledger.get_wallet(user.id).unwrap()['loss_today'] == Decimal('0')


# --- Recharge ---

def test_recharge_request_is_pending(make_user):
    user = make_user()
    data = ledger.request_recharge(user.id, '120', proof_image_url='https://img/1.png', now=T0).unwrap()
    tx = db.session.get(Transaction, data['transaction_id'])
    assert tx.status == 'pending'
    assert tx.amount == Decimal('120')
    assert tx.proof_image_url == 'https://img/1.png'
    assert wallet_of(user.id).recharge_wallet == Decimal('0')


@pytest.mark.parametrize('amount', ['0', '-10', 'abc', None, 'NaN'])
def test_recharge_rejects_invalid_amounts(make_user, amount):
    user = make_user()
    assert ledger.request_recharge(user.id, amount).kind == 'InvalidAmount'
    assert Transaction.query.count() == 0


def test_recharge_approved_twice_credits_once(make_user):
    admin = make_user(role='admin')
    user = make_user()
    tx_id = ledger.request_recharge(user.id, '120', now=T0).unwrap()['transaction_id']

    assert ledger.approve_recharge(tx_id, admin_id=admin.id, admin_note='ok').ok
    again = ledger.approve_recharge(tx_id, admin_id=admin.id)
    assert again.kind == 'InvalidTransition'

    assert wallet_of(user.id).recharge_wallet == Decimal('120')
    assert wallet_of(user.id).balance_wallet == Decimal('0')
    tx = db.session.get(Transaction, tx_id)
    assert tx.status == 'approved'
    assert tx.admin_note == 'ok'
    assert AuditLog.query.filter_by(action='Approve Recharge').count() == 1


def test_recharge_approval_creates_missing_wallet(make_user):
    user = make_user(with_wallet=False)
    tx_id = ledger.request_recharge(user.id, '80', now=T0).unwrap()['transaction_id']
    assert ledger.approve_recharge(tx_id).ok
    assert wallet_of(user.id).recharge_wallet == Decimal('80')


def test_rejected_recharge_credits_nothing(make_user):
    user = make_user()
    tx_id = ledger.request_recharge(user.id, '80', now=T0).unwrap()['transaction_id']
    assert ledger.reject_recharge(tx_id).ok
    assert ledger.approve_recharge(tx_id).kind == 'InvalidTransition'
    assert wallet_of(user.id).recharge_wallet == Decimal('0')
    assert ledger.approve_recharge(9999).kind == 'NotFound'


# --- Withdrawal ---

def test_withdrawal_only_on_weekends(make_user, make_user_product):
    user = make_user(balance_wallet=500)
    make_user_product(user)
    result = ledger.request_withdrawal(user.id, '100', now=T0)
    assert result.kind == 'WithdrawalUnavailable'
    assert 'Wednesday' in result.error.message
    assert wallet_of(user.id).balance_wallet == Decimal('500')


def test_withdrawal_requires_a_purchase(make_user):
    user = make_user(balance_wallet=500)
    assert ledger.request_withdrawal(user.id, '100', now=SATURDAY).kind == 'AccountLocked'


def test_withdrawal_debits_balance_and_applies_vat(make_user, make_user_product):
    user = make_user(balance_wallet=500)
    make_user_product(user)

    data = ledger.request_withdrawal(user.id, '200', payment_method='bkash', payment_name='A',
                                     payment_number='017', now=SATURDAY).unwrap()
    assert data['vat_tax'] == Decimal('20.00')
    assert data['net_amount'] == Decimal('180.00')
    assert data['new_balance'] == Decimal('300')

    wallet = wallet_of(user.id)
    assert wallet.balance_wallet == Decimal('300')
    assert wallet.total_withdrawals == Decimal('200')

    tx = db.session.get(Transaction, data['transaction_id'])
    assert tx.type == 'withdraw'
    assert tx.status == 'pending'
    assert tx.payment_method == 'bkash'


def test_withdrawal_beyond_balance_is_refused(make_user, make_user_product):
    user = make_user(balance_wallet=50, recharge_wallet=1000)
    make_user_product(user)
    result = ledger.request_withdrawal(user.id, '60', now=SATURDAY + timedelta(days=1))
    assert result.kind == 'InsufficientBalance'
    assert wallet_of(user.id).balance_wallet == Decimal('50')
    assert Transaction.query.filter_by(type='withdraw').count() == 0


def test_rejecting_withdrawal_refunds_once(make_user, make_user_product):
    user = make_user(balance_wallet=500)
    make_user_product(user)
    tx_id = ledger.request_withdrawal(user.id, '200', now=SATURDAY).unwrap()['transaction_id']

    assert ledger.reject_withdrawal(tx_id, admin_note='wrong number').ok
    assert ledger.reject_withdrawal(tx_id).kind == 'InvalidTransition'
    assert ledger.approve_withdrawal(tx_id).kind == 'InvalidTransition'

    wallet = wallet_of(user.id)
    assert wallet.balance_wallet == Decimal('500')
    assert wallet.total_withdrawals == Decimal('0')


def test_approving_withdrawal_keeps_debit(make_user, make_user_product):
    user = make_user(balance_wallet=500)
    make_user_product(user)
    tx_id = ledger.request_withdrawal(user.id, '100', now=SATURDAY).unwrap()['transaction_id']

    assert ledger.approve_withdrawal(tx_id).ok
    assert wallet_of(user.id).balance_wallet == Decimal('400')
    assert [w['id'] for w in ledger.list_withdrawals(user.id)] == [tx_id]


def test_status_transition_checks_transaction_type(make_user):
    user = make_user()
    tx_id = ledger.request_recharge(user.id, '10', now=T0).unwrap()['transaction_id']
    assert ledger.approve_withdrawal(tx_id).kind == 'InvalidTransition'
