"""
Program error codes.

Every rejection carries one stable ``ErrorCode``; its name is what clients
match on, its value is the human-readable message.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from vaultshare.core.exceptions import ProgramError


class ErrorCode(Enum):
    NumericalOverflow = "Math overflow"
    InvalidInstructionData = "Instruction arguments failed validation"
    MissingAccount = "Instruction is missing a required account"
    UnauthorizedSigner = "Unauthorized signer or not enough signatures"

    # Identifiers and stage ratios
    InvalidInvestmentIdLength = "Investment id must be exactly 15 bytes"
    InvalidVersionLength = "Version must be exactly 4 bytes"
    InvalidAccountIdLength = "Account id must be exactly 15 bytes"
    InvalidStageRatioLength = "Each stage ratio row must hold exactly 10 values"
    InvalidStageRatioValue = "Stage ratio values must be between 0 and 100"
    InvalidStageRatioSum = "A stage ratio row must not sum above 100"
    NonContiguousStage = "Stage ratio values must stay contiguous once they start"
    EmptyStageRatio = "All stage ratio values are zero"
    InvalidStage = "Stage must be 1, 2 or 3"

    # Investment lifecycle
    InvestmentInfoNotFound = "Investment info does not exist"
    InvestmentInfoNotCompleted = "Investment info has not completed yet"
    InvestmentInfoHasCompleted = "Investment info has completed already"
    InvestmentInfoDeactivated = "Investment info has been deactivated"
    InvalidInvestmentInfoPda = "Account is not the investment info address"
    StandardOnly = "Investment type must be standard"

    # Whitelists
    WhitelistMustBeFive = "Whitelist must contain exactly 5 members"
    WhitelistLengthInvalid = "Withdraw whitelist must hold between 1 and 5 entries"
    WhitelistAddressExists = "Target address already exists in whitelist"
    WhitelistAddressNotFound = "Address to be replaced not found in whitelist"
    EmptyWhitelist = "Withdraw whitelist is empty"
    UnauthorizedRecipient = "Recipient is not in the withdraw whitelist"

    # Records
    RecordIdMismatch = "Record id mismatch"
    RecordIdNotIncreasing = "Record id must exceed every record id added before"
    AccountIdMismatch = "Account id mismatch"
    InvestmentRecordNotFound = "Investment record not found"
    InvalidRecordPda = "Account is not the investment record address"
    NoRecordsInRemainingAccounts = "No investment records were supplied"
    RecordAlreadyRevoked = "Record has been revoked already"
    NoRecordsUpdated = "No record has been updated"
    BatchIdMismatch = "Batch id does not match the record"
    TooManyRecordsLoaded = "Too many records have been loaded"
    DuplicateRecord = "Duplicate record id in supplied records"

    # Vault and tokens
    InvalidVaultPda = "Account is not the vault address"
    InvalidVaultAta = "Account is not the vault token account"
    InvalidTokenMint = "Token mint is not accepted here"
    InvalidRecipientAddress = "Invalid recipient address"
    InvalidRecipientAta = "Account is not the recipient token account"
    InsufficientTokenBalance = "Insufficient token balance in vault"
    InsufficientSolBalance = "Insufficient native balance in vault to cover provisioning"
    MissingAssociatedTokenAccount = "Missing recipient token account"

    # Share caches
    BpRatioOverflow = "Basis point ratio exceeds 10000"
    TotalShareMismatch = "Paid total does not match cached subtotal"
    InvalidTotalUsdt = "Total USDT must be greater than zero"
    InvalidTotalH2coin = "Total H2coin must be greater than zero"
    ProfitCacheNotFound = "Profit share cache not found"
    ProfitCacheExpired = "Profit share cache has expired"
    ProfitAlreadyExecuted = "Profit share already executed"
    InvalidProfitCachePda = "Account is not the profit cache address"
    RefundCacheNotFound = "Refund share cache not found"
    RefundCacheExpired = "Refund share cache has expired"
    RefundAlreadyExecuted = "Refund share already executed"
    InvalidRefundCachePda = "Account is not the refund cache address"
    RefundPeriodInvalid = "Refund year index is out of range"


class VaultShareError(ProgramError):
    """Rejection raised by the vault share program."""

    def __init__(self, code: ErrorCode, message: str = "", **details: Any) -> None:
        super().__init__(code, message or code.value, details=details or None)


def require(condition: bool, code: ErrorCode, message: str = "", **details: Any) -> None:
    if not condition:
        raise VaultShareError(code, message, **details)
