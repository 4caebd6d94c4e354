from apps.common.exceptions import ConflictError, InvalidRequestError, NotFoundError


class InvalidReferralCodeError(NotFoundError):
    default_message = 'Invalid referral code'


class ReferralCodeUsedError(ConflictError):
    default_message = 'Referral code has already been used'


class ReferralCodeExistsError(ConflictError):
    default_message = 'Custom referral code already exists'


class ReferralStateError(ConflictError):
    default_message = 'Referral is not in a state that allows this operation'


class PayoutError(InvalidRequestError):
    default_message = 'Invalid payout request'
