"""Business error kinds returned by the service layer."""


class ServiceError(Exception):
    """Expected business condition (insufficient balance, cooldown, ...)."""
    kind = 'ServiceError'
    status_code = 400
    default_message = 'Request could not be completed'

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        data = {'kind': self.kind, 'message': self.message}
        data.update(self.details)
        return data


class NotFound(ServiceError):
    kind = 'NotFound'
    status_code = 404
    default_message = 'Not found'


class AlreadyExists(ServiceError):
    kind = 'AlreadyExists'
    status_code = 409
    default_message = 'Already exists'


class InvalidCredentials(ServiceError):
    kind = 'InvalidCredentials'
    status_code = 401
    default_message = 'Invalid credentials'


class InvalidAmount(ServiceError):
    kind = 'InvalidAmount'
    default_message = 'Invalid amount'


class InsufficientBalance(ServiceError):
    kind = 'InsufficientBalance'
    default_message = 'Insufficient balance'


class ProductUnavailable(ServiceError):
    kind = 'ProductUnavailable'
    default_message = 'Product is no longer available'


class ProductExpired(ServiceError):
    kind = 'ProductExpired'
    default_message = 'Product has expired'


class EarningNotAvailable(ServiceError):
    """Window not open yet; details carry `remaining`."""
    kind = 'EarningNotAvailable'
    default_message = 'Earning not available yet'


class EarningWindowMissed(ServiceError):
    """Window closed; details carry `remaining` until the next one."""
    kind = 'EarningWindowMissed'
    default_message = 'You missed the 3-hour earning window'


class MaxEarningReached(ServiceError):
    kind = 'MaxEarningReached'
    default_message = 'Maximum earning for this product reached'


class RewardAlreadyClaimed(ServiceError):
    """Details carry `days_remaining`."""
    kind = 'RewardAlreadyClaimed'
    default_message = 'Reward already received'


class IneligibleForReward(ServiceError):
    kind = 'IneligibleForReward'
    status_code = 403
    default_message = 'Not eligible for this reward'


class PrizeUnavailable(ServiceError):
    kind = 'PrizeUnavailable'
    status_code = 403
    default_message = 'Prize smash not available'


class WithdrawalUnavailable(ServiceError):
    kind = 'WithdrawalUnavailable'
    default_message = 'Withdrawals are only available on Saturday and Sunday'


class AccountLocked(ServiceError):
    kind = 'AccountLocked'
    status_code = 403
    default_message = 'Account is locked. You must purchase at least one product before you can withdraw.'


class InvalidTransition(ServiceError):
    kind = 'InvalidTransition'
    status_code = 409
    default_message = 'Transaction is not pending'


class ConcurrencyConflict(ServiceError):
    """A concurrent request changed the record between read and conditional write."""
    kind = 'ConcurrencyConflict'
    status_code = 409
    default_message = 'The request conflicted with a concurrent update, please retry'


class ValidationError(ServiceError):
    """Missing or malformed input."""
    kind = 'ValidationError'
    default_message = 'Invalid input'
