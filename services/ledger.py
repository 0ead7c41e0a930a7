"""
Wallet ledger.

Balances change only through single-statement SQL increments (never read,
compute and write back), and debits are conditional on the balance covering
the amount, so concurrent sessions can neither lose updates nor drive a
balance negative. Every movement is paired with a Transaction row.
"""

import logging
from decimal import Decimal
from flask import current_app
from extensions import db
from models import Wallet, Transaction, UserProduct
from services import clock
from services.errors import (
    NotFound, InvalidAmount, InsufficientBalance, InvalidTransition,
    WithdrawalUnavailable, AccountLocked,
)
from services.results import service_operation
from utils import parse_amount, log_admin_activity

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
DAY_NAMES = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']


# --- Low-level wallet primitives (run inside the caller's transaction) ---

def ensure_wallet(user_id, **initial):
    """Return the user's wallet, creating it with `initial` balances (zero elsewhere) if missing."""
    wallet = Wallet.query.filter_by(user_id=user_id).first()
    if wallet is not None:
        return wallet
    balances = {name: ZERO for name in Wallet.BALANCE_FIELDS}
    balances.update(initial)
    wallet = Wallet(user_id=user_id, **balances)
    db.session.add(wallet)
    db.session.flush()
    return wallet


def increment(user_id, **amounts):
    """Atomically add (or subtract, for negative amounts) to wallet fields. Returns the affected row count."""
    values = {getattr(Wallet, name): getattr(Wallet, name) + amount for name, amount in amounts.items()}
    values[Wallet.updated_at] = clock.utcnow()
    return Wallet.query.filter(Wallet.user_id == user_id).update(values, synchronize_session=False)


def credit(user_id, **amounts):
    """Increment wallet fields; a missing wallet is created with the amounts as its initial balances."""
    if increment(user_id, **amounts) == 0:
        ensure_wallet(user_id, **amounts)


def debit(user_id, field, amount, **also):
    """Subtract `amount` from `field` only if the balance covers it; `also` are extra increments in the same statement."""
    column = getattr(Wallet, field)
    values = {column: column - amount, Wallet.updated_at: clock.utcnow()}
    for name, value in also.items():
        values[getattr(Wallet, name)] = getattr(Wallet, name) + value
    updated = Wallet.query.filter(Wallet.user_id == user_id, column >= amount) \
        .update(values, synchronize_session=False)
    if updated == 0:
        wallet = Wallet.query.filter_by(user_id=user_id).first()
        available = Decimal(getattr(wallet, field)) if wallet else ZERO
        raise InsufficientBalance(
            f"Insufficient balance. Available: {available:.2f}, Required: {amount:.2f}",
            available=available, required=amount,
        )


def record_transaction(user_id, type, amount, status='completed', reference_prefix='TXN', now=None, **fields):
    now = now or clock.utcnow()
    tx = Transaction(
        user_id=user_id,
        type=type,
        amount=amount,
        status=status,
        reference=f"{reference_prefix}_{clock.to_epoch_ms(now)}",
        created_at=now,
        **fields
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def _set_status(tx, expected_type, new_status, admin_note, now):
    """Move a pending transaction to `new_status`; only one caller can win the transition."""
    if tx.type != expected_type:
        raise InvalidTransition(f"Transaction is not a {expected_type}")
    updated = Transaction.query.filter_by(id=tx.id, status='pending').update({
        Transaction.status: new_status,
        Transaction.admin_note: admin_note,
        Transaction.processed_at: now,
    }, synchronize_session=False)
    if updated == 0:
        raise InvalidTransition(f"Transaction is already {tx.status}")


def _load_transaction(transaction_id):
    tx = db.session.get(Transaction, transaction_id)
    if tx is None:
        raise NotFound('Transaction not found')
    return tx


# --- Wallet ---

@service_operation
def get_wallet(user_id):
    return ensure_wallet(user_id).to_dict()


# --- Recharge ---

@service_operation
def request_recharge(user_id, amount, proof_image_url='', now=None):
    value = parse_amount(amount)
    if value is None:
        raise InvalidAmount('Invalid recharge amount')
    tx = record_transaction(user_id, 'recharge', value, status='pending', now=now,
                            proof_image_url=proof_image_url or '')
    return {
        'transaction_id': tx.id,
        'status': 'pending',
        'message': 'Recharge request submitted. Waiting for admin approval.',
    }


@service_operation
def approve_recharge(transaction_id, admin_id=None, admin_note='', now=None):
    now = now or clock.utcnow()
    tx = _load_transaction(transaction_id)
    _set_status(tx, 'recharge', 'approved', admin_note, now)
    credit(tx.user_id, recharge_wallet=Decimal(tx.amount))
    if admin_id:
        log_admin_activity(admin_id, 'Approve Recharge', f'Recharge #{tx.id} of {tx.amount} for user {tx.user_id}')
    logger.info(f"Recharge {tx.id} approved: {tx.amount} credited to user {tx.user_id}")
    return {'id': tx.id, 'status': 'approved'}


@service_operation
def reject_recharge(transaction_id, admin_id=None, admin_note='', now=None):
    now = now or clock.utcnow()
    tx = _load_transaction(transaction_id)
    _set_status(tx, 'recharge', 'rejected', admin_note, now)
    if admin_id:
        log_admin_activity(admin_id, 'Reject Recharge', f'Recharge #{tx.id} for user {tx.user_id}')
    return {'id': tx.id, 'status': 'rejected'}


def list_pending_recharges():
    txs = Transaction.query.filter_by(type='recharge', status='pending') \
        .order_by(Transaction.created_at.desc()).all()
    return [tx.to_dict() for tx in txs]


# --- Withdrawal ---

@service_operation
def request_withdrawal(user_id, amount, payment_method=None, payment_name=None, payment_number=None, now=None):
    now = now or clock.utcnow()
    value = parse_amount(amount)
    if value is None:
        raise InvalidAmount('Invalid withdrawal amount')

    weekday = clock.local_weekday(now)
    if weekday not in current_app.config['WITHDRAW_WEEKDAYS']:
        raise WithdrawalUnavailable(
            f"Withdrawals are only available on Saturday and Sunday. Today is {DAY_NAMES[weekday]}."
        )

    if not UserProduct.query.filter_by(user_id=user_id).first():
        raise AccountLocked()

    wallet = Wallet.query.filter_by(user_id=user_id).first()
    if wallet is None:
        raise NotFound('Wallet not found')

    debit(user_id, 'balance_wallet', value, total_withdrawals=value)

    vat_tax = (value * current_app.config['WITHDRAW_VAT_RATE']).quantize(Decimal('0.01'))
    net_amount = value - vat_tax
    fields = {'vat_tax': vat_tax, 'net_amount': net_amount}
    if payment_method and (payment_name or payment_number):
        fields.update(payment_method=payment_method, payment_name=payment_name, payment_number=payment_number)
    tx = record_transaction(user_id, 'withdraw', value, status='pending', now=now, **fields)

    db.session.refresh(wallet)
    return {
        'transaction_id': tx.id,
        'status': 'pending',
        'amount': value,
        'vat_tax': vat_tax,
        'net_amount': net_amount,
        'new_balance': Decimal(wallet.balance_wallet),
    }


@service_operation
def approve_withdrawal(transaction_id, admin_id=None, admin_note='', now=None):
    now = now or clock.utcnow()
    tx = _load_transaction(transaction_id)
    # The balance was already taken when the request was made
    _set_status(tx, 'withdraw', 'approved', admin_note, now)
    if admin_id:
        log_admin_activity(admin_id, 'Approve Withdrawal', f'Withdrawal #{tx.id} of {tx.amount} for user {tx.user_id}')
    return {'id': tx.id, 'status': 'approved'}


@service_operation
def reject_withdrawal(transaction_id, admin_id=None, admin_note='', now=None):
    now = now or clock.utcnow()
    tx = _load_transaction(transaction_id)
    _set_status(tx, 'withdraw', 'rejected', admin_note, now)
    amount = Decimal(tx.amount)
    increment(tx.user_id, balance_wallet=amount, total_withdrawals=-amount)
    if admin_id:
        log_admin_activity(admin_id, 'Reject Withdrawal', f'Withdrawal #{tx.id} refunded to user {tx.user_id}')
    logger.info(f"Withdrawal {tx.id} rejected: {amount} refunded to user {tx.user_id}")
    return {'id': tx.id, 'status': 'rejected'}


def list_withdrawals(user_id=None):
    query = Transaction.query.filter_by(type='withdraw')
    if user_id is not None:
        query = query.filter_by(user_id=user_id)
    return [tx.to_dict() for tx in query.order_by(Transaction.created_at.desc()).all()]
