"""Custom exceptions for the shielded pool verification core.

Every failure is fail-fast: the transaction is rejected and the caller must
resubmit corrected data. Each exception carries a stable ``code`` that the
HTTP layer reports back to clients.
"""


class ZKPoolException(Exception):
    """Base exception for all shielded pool errors."""

    code = "ZKPoolError"


# Access Errors
class AccessError(ZKPoolException):
    """Base exception for authority and asset checks."""

    code = "AccessError"


class UnauthorizedError(AccessError):
    """Raised when the caller is not the pool authority."""

    code = "Unauthorized"


class TokenMintMismatchError(AccessError):
    """Raised when the transaction asset does not match the pool asset."""

    code = "TokenMintMismatch"


# Freshness Errors
class FreshnessError(ZKPoolException):
    """Base exception for stale state."""

    code = "FreshnessError"


class UnknownRootError(FreshnessError):
    """Raised when the proof root is not in the root history window."""

    code = "UnknownRoot"


# Integrity Errors
class ExtDataHashMismatchError(ZKPoolException):
    """Raised when the external data does not hash to the value bound in the proof."""

    code = "ExtDataHashMismatch"


# Amount Errors
class AmountError(ZKPoolException):
    """Base exception for amount reconciliation errors."""

    code = "AmountError"


class InvalidPublicAmountDataError(AmountError):
    """Raised when the proved public amount does not match ext_amount and fee."""

    code = "InvalidPublicAmountData"


class InvalidExtAmountError(AmountError):
    """Raised when ext_amount is outside its allowed range."""

    code = "InvalidExtAmount"


class InvalidFeeError(AmountError):
    """Raised when fee is outside its allowed range."""

    code = "InvalidFee"


class ArithmeticOverflowError(AmountError):
    """Raised when a counter or index would wrap."""

    code = "ArithmeticOverflow"


# Proof Errors
class ProofError(ZKPoolException):
    """Base exception for proof-related errors."""

    code = "ProofError"


class Groth16Error(ProofError):
    """Base exception for Groth16 verification errors."""

    code = "Groth16Error"


class InvalidG1LengthError(Groth16Error):
    """Raised when a G1 encoding is not 64 bytes."""

    code = "InvalidG1Length"


class InvalidG2LengthError(Groth16Error):
    """Raised when a G2 encoding is not 128 bytes."""

    code = "InvalidG2Length"


class InvalidPublicInputsLengthError(Groth16Error):
    """Raised when the public input count does not match the verifying key."""

    code = "InvalidPublicInputsLength"


class PublicInputGreaterThanFieldSizeError(Groth16Error):
    """Raised when a public input is not a canonical scalar field element."""

    code = "PublicInputGreaterThanFieldSize"


class ProofVerificationFailedError(Groth16Error):
    """Raised when the pairing check rejects the proof.

    Intentionally undifferentiated: it never says which part of the check failed.
    """

    code = "ProofVerificationFailed"


class InvalidPointError(Groth16Error):
    """Raised when a curve point encoding does not describe a valid point."""

    code = "InvalidPoint"


class VerifierInternalError(ZKPoolException):
    """Base exception for verifier faults caused by bad configuration, not user input."""

    code = "VerifierInternalError"


class PreparingInputsG1MulFailedError(VerifierInternalError):
    """Raised when scalar multiplication fails while preparing public inputs."""

    code = "PreparingInputsG1MulFailed"


class PreparingInputsG1AdditionFailedError(VerifierInternalError):
    """Raised when point addition fails while preparing public inputs."""

    code = "PreparingInputsG1AdditionFailed"


class VerifyingKeyError(VerifierInternalError):
    """Raised when verifying key data is malformed."""

    code = "VerifyingKeyError"


# Funds Errors
class FundsError(ZKPoolException):
    """Base exception for ledger balance errors."""

    code = "FundsError"


class InsufficientFundsError(FundsError):
    """Raised by a ledger when the source account cannot cover a transfer."""

    code = "InsufficientFunds"


class InsufficientFundsForWithdrawalError(FundsError):
    """Raised when the pool vault cannot cover a withdrawal."""

    code = "InsufficientFundsForWithdrawal"


class InsufficientFundsForFeeError(FundsError):
    """Raised when the pool vault cannot cover the relayer fee."""

    code = "InsufficientFundsForFee"


class InsufficientFundsForDepositError(FundsError):
    """Raised when the depositor cannot cover a deposit."""

    code = "InsufficientFundsForDeposit"


# Concurrency Errors
class DoubleSpendError(ZKPoolException):
    """Base exception for attempts to spend the same note twice."""

    code = "DoubleSpend"


class NullifierAlreadyReservedError(DoubleSpendError):
    """Raised when a nullifier has already been reserved."""

    code = "NullifierAlreadyReserved"


# Merkle Tree Errors
class MerkleTreeError(ZKPoolException):
    """Base exception for Merkle tree errors."""

    code = "MerkleTreeError"


class InvalidLeafError(MerkleTreeError):
    """Raised when a leaf is not a 32-byte value."""

    code = "InvalidLeaf"


class TreeFullError(MerkleTreeError):
    """Raised when every leaf slot of the tree is used."""

    code = "TreeFull"


# Pool Errors
class PoolError(ZKPoolException):
    """Base exception for pool lifecycle errors."""

    code = "PoolError"


class PoolNotInitializedError(PoolError):
    """Raised when transacting against a pool that was never initialized."""

    code = "PoolNotInitialized"


class PoolAlreadyInitializedError(PoolError):
    """Raised when initializing a pool twice."""

    code = "PoolAlreadyInitialized"


class CommitmentAlreadyExistsError(PoolError):
    """Raised when a commitment record is created twice."""

    code = "CommitmentAlreadyExists"


# Storage Errors
class StorageError(ZKPoolException):
    """Base exception for storage errors."""

    code = "StorageError"


class SerializationError(StorageError):
    """Raised when serialization fails."""

    code = "SerializationError"


class DeserializationError(StorageError):
    """Raised when deserialization fails."""

    code = "DeserializationError"
