"""
Typed Exception Hierarchy for the Workflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the workflow kernel (API layers, UIs, audit tooling) must react
to failures without parsing message strings.  Every error therefore:

  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes, plus a human-readable message

Example:
    try:
        coordinator.complete_transaction(caller, 7)
    except TransactionNotActiveError as e:
        api_response(code=e.code, transaction_id=e.transaction_id,
                     status=e.status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkflowKernelError (base)
    |
    +-- AuthorizationError
    |   +-- AdminRequiredError
    |   +-- NotRegisteredError
    |   +-- NotOwnerError
    |   +-- UnauthorizedApproverError
    |
    +-- NotFoundError
    |   +-- UserNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- ApprovalNotFoundError
    |
    +-- InvalidStateError
    |   +-- TransactionNotPendingError
    |   +-- TransactionNotActiveError
    |   +-- ApprovalAlreadyRequestedError
    |   +-- ApprovalAlreadyProcessedError
    |
    +-- InvalidInputError
    |   +-- AlreadyRegisteredError
    |   +-- InvalidAddressError
    |   +-- InvalidRecipientError
    |   +-- InvalidAmountError
    |   +-- InvalidRoleError
    |
    +-- ConcurrencyError
    |   +-- ReentrancyError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                  | When Raised
----------------|-----------------------|-----------------------------------------
Authorization   | ADMIN_REQUIRED        | Caller lacks the Admin capability
                | NOT_REGISTERED        | Caller is not a registered user
                | NOT_OWNER             | Caller is not the transaction sender
                | UNAUTHORIZED          | Caller lacks the Approver capability
----------------|-----------------------|-----------------------------------------
Not found       | USER_NOT_FOUND        | Role update for an unknown address
                | TRANSACTION_NOT_FOUND | Transaction id is 0 or unknown
                | APPROVAL_NOT_FOUND    | Approval id is 0 or unknown
----------------|-----------------------|-----------------------------------------
Invalid state   | NOT_PENDING           | Approval requested on non-Pending tx
                | NOT_ACTIVE            | Completing a tx that is not Active
                | ALREADY_REQUESTED     | Second approval request on a tx
                | ALREADY_PROCESSED     | Approval already approved/rejected
----------------|-----------------------|-----------------------------------------
Invalid input   | ALREADY_REGISTERED    | Duplicate registration for an address
                | INVALID_ADDRESS       | Null/zero principal on registration
                | INVALID_RECIPIENT     | Null/zero recipient on create
                | INVALID_AMOUNT        | Amount not a positive uint256
                | INVALID_ROLE          | Unknown role value
----------------|-----------------------|-----------------------------------------
Concurrency     | REENTRANT_CALL        | Operation re-entered on a busy record
----------------|-----------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION| Attempt to delete a ledger record

Every error is raised before any mutation is flushed, and the coordinator
rolls back the surrounding session, so a failure never leaves partial state.
"""


class WorkflowKernelError(Exception):
    """
    Base exception for all workflow kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.  ``kind`` names the error category.
    """

    code: str = "WORKFLOW_KERNEL_ERROR"
    kind: str = "error"

    @property
    def reason(self) -> str:
        """Human-readable reason string."""
        return str(self)


# Authorization


class AuthorizationError(WorkflowKernelError):
    """Caller lacks a required capability or ownership."""

    code: str = "AUTHORIZATION_ERROR"
    kind: str = "authorization"


class AdminRequiredError(AuthorizationError):
    """Operation requires the Admin capability."""

    code: str = "ADMIN_REQUIRED"

    def __init__(self, caller: str, operation: str):
        self.caller = caller
        self.operation = operation
        super().__init__(f"Admin role required for {operation} (caller {caller})")


class NotRegisteredError(AuthorizationError):
    """Caller is not a registered user."""

    code: str = "NOT_REGISTERED"

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"User not registered: {address}")


class NotOwnerError(AuthorizationError):
    """Caller is not the owner (sender) of the transaction."""

    code: str = "NOT_OWNER"

    def __init__(self, transaction_id: int, caller: str, owner: str):
        self.transaction_id = transaction_id
        self.caller = caller
        self.owner = owner
        super().__init__(
            f"Not transaction owner: {caller} does not own transaction "
            f"{transaction_id}"
        )


class UnauthorizedApproverError(AuthorizationError):
    """Caller does not hold the Approver capability."""

    code: str = "UNAUTHORIZED"

    def __init__(self, caller: str, approval_id: int):
        self.caller = caller
        self.approval_id = approval_id
        super().__init__(
            f"Not authorized: {caller} cannot process approval {approval_id}"
        )


# Not found


class NotFoundError(WorkflowKernelError):
    """Referenced record is the zero sentinel or otherwise unknown."""

    code: str = "NOT_FOUND"
    kind: str = "not_found"


class UserNotFoundError(NotFoundError):
    """Address is not a registered user."""

    code: str = "USER_NOT_FOUND"

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"User not registered: {address}")


class TransactionNotFoundError(NotFoundError):
    """Transaction id is 0 or unknown."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: int):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction does not exist: {transaction_id}")


class ApprovalNotFoundError(NotFoundError):
    """Approval id is 0 or unknown."""

    code: str = "APPROVAL_NOT_FOUND"

    def __init__(self, approval_id: int):
        self.approval_id = approval_id
        super().__init__(f"Approval does not exist: {approval_id}")


# Invalid state


class InvalidStateError(WorkflowKernelError):
    """A status precondition was not met."""

    code: str = "INVALID_STATE"
    kind: str = "invalid_state"


class TransactionNotPendingError(InvalidStateError):
    """Approval can only be requested for a Pending transaction."""

    code: str = "NOT_PENDING"

    def __init__(self, transaction_id: int, status: str):
        self.transaction_id = transaction_id
        self.status = status
        super().__init__(
            f"Transaction not pending: {transaction_id} is {status}"
        )


class TransactionNotActiveError(InvalidStateError):
    """Only an Active transaction can be completed."""

    code: str = "NOT_ACTIVE"

    def __init__(self, transaction_id: int, status: str):
        self.transaction_id = transaction_id
        self.status = status
        super().__init__(
            f"Transaction not active: {transaction_id} is {status}"
        )


class ApprovalAlreadyRequestedError(InvalidStateError):
    """Transaction already carries an approval request."""

    code: str = "ALREADY_REQUESTED"

    def __init__(self, transaction_id: int, approval_id: int):
        self.transaction_id = transaction_id
        self.approval_id = approval_id
        super().__init__(
            f"Approval already requested for transaction {transaction_id} "
            f"(approval {approval_id})"
        )


class ApprovalAlreadyProcessedError(InvalidStateError):
    """Approval already carries a final outcome."""

    code: str = "ALREADY_PROCESSED"

    def __init__(self, approval_id: int, status: str):
        self.approval_id = approval_id
        self.status = status
        super().__init__(
            f"Approval already processed: {approval_id} is {status}"
        )


# Invalid input


class InvalidInputError(WorkflowKernelError):
    """Request arguments are invalid."""

    code: str = "INVALID_INPUT"
    kind: str = "invalid_input"


class AlreadyRegisteredError(InvalidInputError):
    """Address already has a user record."""

    code: str = "ALREADY_REGISTERED"

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"User already registered: {address}")


class InvalidAddressError(InvalidInputError):
    """Address is null, empty, or the zero principal."""

    code: str = "INVALID_ADDRESS"

    def __init__(self, address: str | None):
        self.address = address
        super().__init__(f"Invalid address: {address!r}")


class InvalidRecipientError(InvalidInputError):
    """Recipient is null, empty, or the zero principal."""

    code: str = "INVALID_RECIPIENT"

    def __init__(self, recipient: str | None):
        self.recipient = recipient
        super().__init__(f"Invalid recipient address: {recipient!r}")


class InvalidAmountError(InvalidInputError):
    """Amount is not a positive integer in the uint256 range."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: object):
        self.amount = amount
        super().__init__(f"Amount must be greater than 0: {amount!r}")


class InvalidRoleError(InvalidInputError):
    """Role value does not name a known role."""

    code: str = "INVALID_ROLE"

    def __init__(self, role: object):
        self.role = role
        super().__init__(f"Invalid role: {role!r}")


# Concurrency


class ConcurrencyError(WorkflowKernelError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"
    kind: str = "concurrency"


class ReentrancyError(ConcurrencyError):
    """
    An operation was re-entered on a record whose prior invocation is
    still in flight on the same thread.
    """

    code: str = "REENTRANT_CALL"

    def __init__(self, aggregate: str, key: object):
        self.aggregate = aggregate
        self.key = key
        super().__init__(f"Reentrant call on {aggregate} {key!r}")


# Immutability


class ImmutabilityViolationError(WorkflowKernelError):
    """Attempted to delete a ledger record."""

    code: str = "IMMUTABILITY_VIOLATION"
    kind: str = "immutability"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason_detail = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )
