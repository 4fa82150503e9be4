"""Pydantic models for API requests and responses."""

from typing import Optional
from pydantic import BaseModel, Field


class AccountMappingStatus(BaseModel):
    """Mapping of the bridge's primary account."""
    primary_address: str
    secondary_address: Optional[str] = None
    mapped: bool


class ContractMappingRequest(BaseModel):
    """Request to map an ERC20 contract pair."""
    primary_contract: str
    deployment_tx_hash: str
    secondary_contract: str


class ContractMappingStatus(BaseModel):
    """Secondary-chain counterpart of a primary-chain contract."""
    primary_contract: str
    secondary_contract: Optional[str] = None
    mapped: bool


class TransferRequest(BaseModel):
    """Deposit or withdrawal of an asset."""
    asset: str
    amount: int = Field(gt=0)  # base units


class TransactionResponse(BaseModel):
    """A submitted transaction."""
    tx_hash: str
    description: str = ""


class DepositRecord(BaseModel):
    """A deposit found in the primary gateway's logs."""
    tx_hash: str
    asset: str
    amount: int
    block_number: int


class WithdrawalResponse(BaseModel):
    """Outcome of a withdrawal request."""
    asset: str
    amount: int
    nonce: Optional[int] = None
    state: str  # "finalized" or "pending"
    initiation_tx: Optional[str] = None
    finalization_tx: Optional[str] = None


class PendingWithdrawal(BaseModel):
    """The outstanding withdrawal receipt on the secondary chain."""
    owner: str
    token_kind: str
    token_contract: str
    amount: int
    nonce: int
    signed: bool


class RecoverRequest(BaseModel):
    """Request to finalize a pending withdrawal."""
    asset: str
    nonce: Optional[int] = Field(default=None, ge=0)


class RecoverResponse(BaseModel):
    """Outcome of a recovery attempt."""
    recovered: bool
    tx_hash: Optional[str] = None


class WithdrawalRecord(BaseModel):
    """A withdrawal as recorded in the local journal."""
    owner: str
    asset: str
    nonce: int
    amount: int
    state: str
    initiation_tx: Optional[str] = None
    finalization_tx: Optional[str] = None
    error: Optional[str] = None
    updated_at: Optional[str] = None


class FinalizedWithdrawal(BaseModel):
    """A finalized withdrawal found in the primary gateway's logs."""
    tx_hash: str
    asset: str
    amount: int
    block_number: int


class BalanceResponse(BaseModel):
    """Balances of one asset on both chains."""
    asset: str
    primary: int
    secondary: int


class HealthResponse(BaseModel):
    """API health check response."""
    status: str
    service: str
    version: str
