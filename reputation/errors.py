class LedgerError(Exception):
    code = "LedgerError"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


# Authorization

class AuthorizationError(LedgerError):
    code = "AuthorizationError"


class UnauthorizedError(AuthorizationError):
    code = "Unauthorized"


class NotAuthorizedError(AuthorizationError):
    code = "NotAuthorized"


class NotProgramOwnerError(AuthorizationError):
    code = "NotProgramOwner"


# Validation

class InvalidInputError(LedgerError):
    code = "InvalidInput"


class InvalidAddressError(InvalidInputError):
    code = "InvalidAddress"


class InvalidRecipientError(InvalidInputError):
    code = "InvalidRecipient"


class OutOfRangeError(InvalidInputError):
    code = "OutOfRange"


class AmountOutOfRangeError(InvalidInputError):
    code = "AmountOutOfRange"


class InvalidDurationError(InvalidInputError):
    code = "InvalidDuration"


class InvalidLimitsError(InvalidInputError):
    code = "InvalidLimits"


class InvalidContractError(InvalidInputError):
    code = "InvalidContract"


# Lifecycle state

class InvalidStateError(LedgerError):
    code = "InvalidState"


class NotFoundError(InvalidStateError):
    code = "NotFound"


class AlreadyActiveError(InvalidStateError):
    code = "AlreadyActive"


class AlreadyApprovedError(InvalidStateError):
    code = "AlreadyApproved"


class NotApprovedError(InvalidStateError):
    code = "NotApproved"


class AlreadyRepaidError(InvalidStateError):
    code = "AlreadyRepaid"


class AlreadyConfiguredError(InvalidStateError):
    code = "AlreadyConfigured"


class AlreadyAcknowledgedError(InvalidStateError):
    code = "AlreadyAcknowledged"


class AlreadyAppliedError(InvalidStateError):
    code = "AlreadyApplied"


class InvalidStateTransitionError(InvalidStateError):
    code = "InvalidStateTransition"


class NonTransferableError(InvalidStateError):
    code = "NonTransferable"


class ContractPausedError(InvalidStateError):
    code = "ContractPaused"


class PublishingPausedError(InvalidStateError):
    code = "PublishingPaused"


class OracleUnavailableError(InvalidStateError):
    code = "OracleUnavailable"


class ReentrancyError(InvalidStateError):
    code = "Reentrancy"


# Freshness and trust

class FreshnessError(LedgerError):
    code = "Freshness"


class NoScoreError(FreshnessError):
    code = "NoScore"


class StaleScoreError(FreshnessError):
    code = "StaleScore"


class RateLimitedError(FreshnessError):
    code = "RateLimited"


# Business-rule gating

class ResourceError(LedgerError):
    code = "Resource"


class InsufficientFundsError(ResourceError):
    code = "InsufficientFunds"


class InsufficientBalanceError(ResourceError):
    code = "InsufficientBalance"


class InsufficientAllowanceError(ResourceError):
    code = "InsufficientAllowance"


class InsufficientReputationError(ResourceError):
    code = "InsufficientReputation"


class InsufficientScoreError(ResourceError):
    code = "InsufficientScore"


class NotEligibleError(ResourceError):
    code = "NotEligible"
