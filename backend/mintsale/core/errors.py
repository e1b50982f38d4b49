"""
Sale error taxonomy.

Every rejection raised by the sale engine is a SaleError subclass. Each class
carries a stable machine-readable ``code`` and the HTTP status the API layer
answers with. Errors are raised synchronously and never retried internally;
a failed call leaves no state change behind.
"""


class SaleError(Exception):
    """Base class for all sale rejections."""

    code = "sale_error"
    status_code = 400
    default_message = "Sale operation rejected"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# --- Phase ---

class PhaseError(SaleError):
    code = "phase_error"
    status_code = 409


class SaleNotOpen(PhaseError):
    code = "sale_not_open"
    default_message = "Sale window is not open"


class SaleNotStarted(SaleNotOpen):
    code = "sale_not_started"
    default_message = "sale has not started yet"


class SaleEnded(SaleNotOpen):
    code = "sale_ended"
    default_message = "sale has already ended"


class TooEarly(PhaseError):
    code = "too_early"
    default_message = "too early: sales have not closed yet"


class SaleAlreadyStarted(PhaseError):
    code = "sale_already_started"
    default_message = "sale has already started"


# --- Capacity ---

class CapacityError(SaleError):
    code = "capacity_error"
    status_code = 409


class SupplyExceeded(CapacityError):
    code = "supply_exceeded"
    default_message = "Purchase would exceed max supply"


# --- Payment ---

class PaymentError(SaleError):
    code = "payment_error"
    status_code = 402


class InsufficientPayment(PaymentError):
    code = "insufficient_payment"
    default_message = "Need to send more ETH."


class InsufficientBalance(PaymentError):
    code = "insufficient_balance"
    default_message = "transfer amount exceeds balance"


class InsufficientAllowance(PaymentError):
    code = "insufficient_allowance"
    default_message = "insufficient allowance"


# --- Eligibility ---

class EligibilityError(SaleError):
    code = "eligibility_error"
    status_code = 400


class NotAllowlisted(EligibilityError):
    code = "not_allowlisted"
    status_code = 403
    default_message = "This address is not allow listed for the presale"


class ZeroAddress(EligibilityError):
    code = "zero_address"
    default_message = "Zero address not on Allow List"


class InvalidAddress(EligibilityError):
    code = "invalid_address"
    default_message = "Invalid address"


class InvalidQuantity(EligibilityError):
    code = "invalid_quantity"
    default_message = "Quantity must be positive"


class NothingToMint(EligibilityError):
    code = "nothing_to_mint"
    default_message = "nothing to mint"


class NothingToRebate(EligibilityError):
    code = "nothing_to_rebate"
    default_message = "Nothing to rebate."


class TokenNotFound(EligibilityError):
    code = "token_not_found"
    status_code = 404
    default_message = "URI query for nonexistent token"


# --- Replay ---

class ReplayError(SaleError):
    code = "replay_error"
    status_code = 409


class AlreadyClaimed(ReplayError):
    code = "already_claimed"
    default_message = "already claimed"


# --- Access ---

class AccessError(SaleError):
    code = "access_error"
    status_code = 403


class NotOwner(AccessError):
    code = "not_owner"
    default_message = "caller is not the owner"


class RelayedCallRejected(AccessError):
    code = "relayed_call_rejected"
    default_message = "The caller is another contract"


class SessionInvalid(AccessError):
    code = "session_invalid"
    status_code = 401
    default_message = "Missing, expired or invalid wallet session"
