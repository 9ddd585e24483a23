"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the posting engine must tell a rejected business event (retry
after fixing the input) from an integrity fault (page an operator).  Parsing
message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)
  4. Every exception says whether resubmitting can succeed (``retryable``)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- NotFoundError
    |
    +-- RegistryError
    |   +-- DuplicateCodeError
    |   +-- AmbiguousMappingError
    |   +-- ClassificationMismatchError
    |   +-- DuplicateTenantError
    |
    +-- AccountError
    |   +-- AccountNotActiveError
    |   +-- InvalidStatusTransitionError
    |   +-- DuplicateAccountNumberError
    |   +-- GLAccountInactiveError
    |
    +-- PostingError
    |   +-- InvalidAmountError
    |   +-- InsufficientFundsError
    |   +-- UnsupportedTransactionError
    |   +-- AlreadyDisbursedError
    |   +-- InvalidLegsError
    |
    +-- ConcurrencyError
    |   +-- LockTimeoutError
    |
    +-- IntegrityFault
        +-- CommitIntegrityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                       | When Raised
-------------|----------------------------|------------------------------------------
Lookup       | NOT_FOUND                  | Entity missing OR owned by another tenant
-------------|----------------------------|------------------------------------------
Registry     | DUPLICATE_CODE             | (tenant, GL code) already registered
             | AMBIGUOUS_MAPPING          | More than one active control/role account
             | CLASSIFICATION_MISMATCH    | Ledger role on wrong account class
             | DUPLICATE_TENANT           | Tenant code already registered
-------------|----------------------------|------------------------------------------
Account      | ACCOUNT_NOT_ACTIVE         | Posting to DORMANT/CLOSED product account
             | INVALID_STATUS_TRANSITION  | e.g. CLOSED -> ACTIVE
             | DUPLICATE_ACCOUNT_NUMBER   | (tenant, account number) already opened
             | GL_ACCOUNT_INACTIVE        | Leg resolves to a deactivated GL account
-------------|----------------------------|------------------------------------------
Posting      | INVALID_AMOUNT             | amount <= 0 or over-precise
             | INSUFFICIENT_FUNDS         | Balance would go negative
             | UNSUPPORTED_TRANSACTION    | Type not allowed for product variant
             | ALREADY_DISBURSED          | Second loan disbursement
             | INVALID_LEGS               | debit == credit, or cross-tenant leg
-------------|----------------------------|------------------------------------------
Concurrency  | LOCK_TIMEOUT               | Commit unit not acquired in time
-------------|----------------------------|------------------------------------------
Integrity    | COMMIT_INTEGRITY           | Failure inside the atomic commit (FATAL)
             | IMMUTABILITY_VIOLATION     | UPDATE/DELETE of an immutable record

===============================================================================
HANDLING PATTERNS
===============================================================================

1. BUSINESS REJECTIONS ARE EXPECTED:

    try:
        engine.post(tenant_id, event)
    except InsufficientFundsError as e:
        reply(code=e.code, available=e.available, requested=e.requested)

2. IDEMPOTENT REPLAY IS NOT AN ERROR:

    record = engine.post(tenant_id, event)   # same key twice -> same record

3. INTEGRITY FAULTS ARE NEVER RETRIED:

    except CommitIntegrityError as e:
        alert_operations(e)   # account already flagged for reconciliation

===============================================================================
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"
    retryable: bool = False


# Lookup


class NotFoundError(LedgerKernelError):
    """
    Entity not found for the given tenant.

    Raised identically for "does not exist" and "belongs to another tenant"
    so that existence never leaks across tenants.
    """

    code: str = "NOT_FOUND"
    retryable: bool = True

    def __init__(self, entity_type: str, reference: str):
        self.entity_type = entity_type
        self.reference = reference
        super().__init__(f"{entity_type} not found: {reference}")


# Chart of accounts registry


class RegistryError(LedgerKernelError):
    """Base exception for chart-of-accounts registry errors."""

    code: str = "REGISTRY_ERROR"
    retryable: bool = True


class DuplicateCodeError(RegistryError):
    """GL account code already registered for the tenant."""

    code: str = "DUPLICATE_CODE"

    def __init__(self, tenant_id: str, account_code: str):
        self.tenant_id = tenant_id
        self.account_code = account_code
        super().__init__(f"GL account code already exists: {account_code}")


class AmbiguousMappingError(RegistryError):
    """More than one active GL account matches a control/role mapping."""

    code: str = "AMBIGUOUS_MAPPING"

    def __init__(self, tenant_id: str, mapping: str, matches: int):
        self.tenant_id = tenant_id
        self.mapping = mapping
        self.matches = matches
        super().__init__(
            f"Ambiguous GL mapping {mapping}: {matches} active accounts match"
        )


class ClassificationMismatchError(RegistryError):
    """A ledger role was requested on an account of the wrong classification."""

    code: str = "CLASSIFICATION_MISMATCH"

    def __init__(self, ledger_role: str, expected: str, actual: str):
        self.ledger_role = ledger_role
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Ledger role {ledger_role} requires a {expected} account, got {actual}"
        )



class DuplicateTenantError(RegistryError):
    """Tenant code already registered."""

    code: str = "DUPLICATE_TENANT"

    def __init__(self, tenant_code: str):
        self.tenant_code = tenant_code
        super().__init__(f"Tenant code already exists: {tenant_code}")

# Product account errors


class AccountError(LedgerKernelError):
    """Base exception for account-related errors."""

    code: str = "ACCOUNT_ERROR"
    retryable: bool = True


class AccountNotActiveError(AccountError):
    """Product account is not ACTIVE."""

    code: str = "ACCOUNT_NOT_ACTIVE"

    def __init__(self, account_number: str, status: str):
        self.account_number = account_number
        self.status = status
        super().__init__(f"Account {account_number} is not active (status={status})")


class InvalidStatusTransitionError(AccountError):
    """Requested lifecycle transition is not permitted."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, account_number: str, from_status: str, to_status: str, reason: str = ""):
        self.account_number = account_number
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        message = f"Account {account_number} cannot move {from_status} -> {to_status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class DuplicateAccountNumberError(AccountError):
    """Product account number already exists for the tenant."""

    code: str = "DUPLICATE_ACCOUNT_NUMBER"

    def __init__(self, account_number: str):
        self.account_number = account_number
        super().__init__(f"Account number already exists: {account_number}")


class GLAccountInactiveError(AccountError):
    """A posting leg resolves to a deactivated GL account."""

    code: str = "GL_ACCOUNT_INACTIVE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"GL account is inactive: {account_code}")


# Posting errors


class PostingError(LedgerKernelError):
    """Base exception for posting-related errors."""

    code: str = "POSTING_ERROR"
    retryable: bool = True


class InvalidAmountError(PostingError):
    """Amount is not a strictly positive 2dp Decimal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: str, reason: str):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount}: {reason}")


class InsufficientFundsError(PostingError):
    """Applying the event would take the product balance below zero."""

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(self, account_number: str, available: str, requested: str):
        self.account_number = account_number
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient funds on {account_number}: "
            f"available={available}, requested={requested}"
        )


class UnsupportedTransactionError(PostingError):
    """Transaction type is not accepted by this product variant."""

    code: str = "UNSUPPORTED_TRANSACTION"

    def __init__(self, product_type: str, transaction_type: str, reason: str = ""):
        self.product_type = product_type
        self.transaction_type = transaction_type
        self.reason = reason
        message = f"{transaction_type} is not supported for {product_type} accounts"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class AlreadyDisbursedError(PostingError):
    """Loan has already been disbursed."""

    code: str = "ALREADY_DISBURSED"

    def __init__(self, account_number: str):
        self.account_number = account_number
        super().__init__(f"Loan {account_number} has already been disbursed")


class InvalidLegsError(PostingError):
    """Resolved debit/credit legs violate the double-entry invariant."""

    code: str = "INVALID_LEGS"

    def __init__(self, debit_account: str, credit_account: str, reason: str):
        self.debit_account = debit_account
        self.credit_account = credit_account
        self.reason = reason
        super().__init__(
            f"Invalid posting legs debit={debit_account} credit={credit_account}: {reason}"
        )


# Concurrency


class ConcurrencyError(LedgerKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    retryable: bool = True


class LockTimeoutError(ConcurrencyError):
    """The per-account commit unit could not be acquired in time."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, account_number: str, timeout: float):
        self.account_number = account_number
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout}s waiting for account {account_number}"
        )


# Integrity faults -- never retried automatically


class IntegrityFault(LedgerKernelError):
    """Base exception for faults that require operator attention."""

    code: str = "INTEGRITY_FAULT"
    retryable: bool = False


class CommitIntegrityError(IntegrityFault):
    """
    The atomic commit (journal append + balance mutation) failed.

    The affected product account has been flagged for reconciliation.
    Never retried automatically.
    """

    code: str = "COMMIT_INTEGRITY"

    def __init__(self, tenant_id: str, account_number: str, reason: str):
        self.tenant_id = tenant_id
        self.account_number = account_number
        self.reason = reason
        super().__init__(
            f"Commit integrity failure on account {account_number}: {reason}"
        )


class ImmutabilityViolationError(IntegrityFault):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
