from apps.common.exceptions import InvalidRequestError


class InvalidTierError(InvalidRequestError):
    default_message = 'Invalid membership tier'


class TierDowngradeError(InvalidRequestError):
    default_message = 'Cannot downgrade or stay at the same tier'


class NonRenewableTierError(InvalidRequestError):
    default_message = 'Membership tier does not expire and cannot be renewed'
