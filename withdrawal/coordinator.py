"""Withdrawal coordination across the two gateways.

A withdrawal starts on the secondary chain, waits for the attestor to sign
the receipt, and ends with the signature being submitted to the primary
chain. Waiting is time-boxed; when the deadline passes the flow is left
``PENDING`` and can be resumed later through ``recover()``, from this or any
other process, because the withdrawal nonce and the receipt both live
on-chain.
"""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from chain.node import TransactionHandle
from core.errors import BridgeError, WithdrawalAlreadyPending, WithdrawalNonceMismatch
from core.types import Address, Asset, TokenKind, TokenWithdrawalSigned, WithdrawalState
from events.subscription import wait_for_first_match
from gateway.primary import PrimaryGateway
from gateway.secondary import SecondaryGateway

logger = logging.getLogger(__name__)

DEFAULT_SIGNATURE_TIMEOUT = 120.0

State = WithdrawalState

ALLOWED_TRANSITIONS: Dict[WithdrawalState, FrozenSet[WithdrawalState]] = {
    State.NEW: frozenset({State.INITIATED, State.PENDING, State.SIGNED, State.FAILED}),
    State.INITIATED: frozenset({State.AWAITING_SIGNATURE, State.FAILED}),
    State.AWAITING_SIGNATURE: frozenset({State.SIGNED, State.PENDING, State.FAILED}),
    State.SIGNED: frozenset({State.FINALIZED, State.FAILED}),
    State.PENDING: frozenset({State.SIGNED, State.FAILED}),
    State.FINALIZED: frozenset(),
    State.FAILED: frozenset(),
}


@dataclass
class WithdrawalFlow:
    """Snapshot of one withdrawal."""
    owner: Address
    asset: Asset
    amount: int
    nonce: Optional[int] = None
    state: WithdrawalState = WithdrawalState.NEW
    signature: Optional[bytes] = None
    initiation: Optional[TransactionHandle] = None
    finalization: Optional[TransactionHandle] = None
    error: Optional[str] = None


class InvalidTransition(BridgeError):
    """A withdrawal state change the protocol does not allow."""
    pass


class WithdrawalCoordinator:
    """Drives a single withdrawal of one asset.

    Create one coordinator per flow; instances share no mutable state, so
    independent withdrawals can run concurrently.
    """

    def __init__(
        self,
        primary: PrimaryGateway,
        secondary: SecondaryGateway,
        asset: Asset,
        signature_timeout: float = DEFAULT_SIGNATURE_TIMEOUT,
        confirmations: int = 1,
        journal=None,
    ):
        """Initialize the coordinator.

        Args:
            primary: Primary-chain gateway client
            secondary: Secondary-chain gateway client
            asset: Asset being withdrawn
            signature_timeout: Seconds to wait for the attestor's signature
            confirmations: Blocks to wait for on submitted transactions
            journal: Optional WithdrawalJournal recording state changes
        """
        self.primary = primary
        self.secondary = secondary
        self.asset = asset
        self.signature_timeout = signature_timeout
        self.confirmations = confirmations
        self.journal = journal
        self.state = WithdrawalState.NEW
        self.flow: Optional[WithdrawalFlow] = None

    @property
    def owner(self) -> Address:
        return self.primary.address

    async def _transition(self, state: WithdrawalState) -> None:
        if state == self.state:
            return
        if state not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransition(f"Cannot move withdrawal from {self.state.value} to {state.value}")

        logger.info(f"Withdrawal of {self.asset.symbol} for {self.owner}: {self.state.value} -> {state.value}")
        self.state = state
        if self.flow is not None:
            self.flow.state = state
            if self.journal is not None and self.flow.nonce is not None:
                await self.journal.record(self.flow)

    async def _fail(self, error: BridgeError) -> None:
        if self.flow is not None:
            self.flow.error = str(error)
        if WithdrawalState.FAILED in ALLOWED_TRANSITIONS[self.state]:
            await self._transition(WithdrawalState.FAILED)

    def _matches(self, event: TokenWithdrawalSigned) -> bool:
        return event.token_contract == self.asset.primary_contract and event.token_owner == self.owner

    def _primary_token_contract(self) -> Optional[Address]:
        return None if self.asset.kind == TokenKind.ETH else self.asset.primary_contract

    def _secondary_token_contract(self) -> Optional[Address]:
        return None if self.asset.kind == TokenKind.ETH else self.asset.secondary_contract

    async def withdraw(self, amount: int) -> WithdrawalFlow:
        """Run a withdrawal from initiation to finalization.

        Returns:
            The flow, ``FINALIZED`` with its finalization handle, or
            ``PENDING`` if the attestor did not sign before the deadline

        Raises:
            WithdrawalAlreadyPending: If the owner has an unresolved receipt
            InvalidSignature, AmountMismatch: If finalization reverts
            BridgeError: On any other failure; the flow ends ``FAILED``
        """
        if self.state != WithdrawalState.NEW:
            raise InvalidTransition("A coordinator runs a single withdrawal")

        self.flow = WithdrawalFlow(owner=self.owner, asset=self.asset, amount=amount)

        try:
            nonce = await self.primary.get_withdrawal_nonce()
            outstanding = await self.secondary.get_withdrawal_receipt()
            if outstanding is not None and outstanding.nonce == nonce:
                raise WithdrawalAlreadyPending(
                    f"{self.owner} has an unresolved withdrawal (nonce {outstanding.nonce})"
                )
            self.flow.nonce = nonce

            # Registered before submission so the signed event cannot slip past.
            subscription = await self.secondary.subscribe_withdrawal_signed()
            try:
                handle = await self.secondary.initiate_withdrawal(
                    amount, self.asset.kind, self._secondary_token_contract()
                )
                await handle.wait(confirmations=self.confirmations)
            except BaseException:
                await subscription.close()
                raise

            self.flow.initiation = handle
            await self._transition(WithdrawalState.INITIATED)
            await self._transition(WithdrawalState.AWAITING_SIGNATURE)

            event = await wait_for_first_match(subscription, self._matches, self.signature_timeout)
            if event is None:
                logger.warning(
                    f"Withdrawal nonce {nonce} not signed within {self.signature_timeout}s; "
                    f"left pending for recovery"
                )
                await self._transition(WithdrawalState.PENDING)
                return self.flow

            self.flow.signature = event.signature
            await self._transition(WithdrawalState.SIGNED)
            await self._finalize(amount, event.signature)
            return self.flow
        except BridgeError as e:
            await self._fail(e)
            raise

    async def recover(self, nonce: Optional[int] = None) -> Optional[WithdrawalFlow]:
        """Resume a withdrawal whose signature wait ended without a match.

        Safe to call any number of times and from any process holding the
        owner's keys.

        Args:
            nonce: Nonce of the withdrawal being resumed; defaults to the one
                this coordinator started, else the primary chain's current nonce

        Returns:
            None if nothing is pending for this asset (including when the
            withdrawal was already finalized), a ``PENDING`` flow if the
            attestor has not signed yet, else the ``FINALIZED`` flow

        Raises:
            WithdrawalNonceMismatch: If the receipt belongs to another withdrawal
        """
        if self.state not in (WithdrawalState.NEW, WithdrawalState.PENDING):
            raise InvalidTransition(f"Cannot recover a withdrawal in state {self.state.value}")

        if nonce is None and self.flow is not None:
            nonce = self.flow.nonce

        try:
            primary_nonce = await self.primary.get_withdrawal_nonce()
            expected = primary_nonce if nonce is None else nonce

            if primary_nonce > expected:
                logger.info(f"Withdrawal nonce {expected} for {self.owner} already finalized")
                return None

            receipt = await self.secondary.get_withdrawal_receipt()
            if receipt is None:
                logger.info(f"No pending withdrawal receipt for {self.owner}")
                return None

            if receipt.nonce < primary_nonce:
                # Finalized on the primary chain; the sidechain clears it once the attestor relays that.
                logger.info(f"Receipt nonce {receipt.nonce} for {self.owner} already finalized")
                return None
            if receipt.nonce != primary_nonce:
                raise WithdrawalNonceMismatch(primary_nonce, receipt.nonce)
            if receipt.nonce != expected:
                raise WithdrawalNonceMismatch(expected, receipt.nonce)

            if receipt.token_kind != self.asset.kind or receipt.token_contract != self.asset.primary_contract:
                logger.info(
                    f"Pending receipt for {self.owner} is for {receipt.token_contract}, "
                    f"not {self.asset.symbol}"
                )
                return None

            if self.flow is None:
                self.flow = WithdrawalFlow(owner=self.owner, asset=self.asset, amount=receipt.amount)
            self.flow.nonce = receipt.nonce
            self.flow.amount = receipt.amount

            if not receipt.is_signed:
                logger.info(f"Withdrawal nonce {receipt.nonce} still awaiting the attestor's signature")
                await self._transition(WithdrawalState.PENDING)
                return self.flow

            self.flow.signature = receipt.signature
            await self._transition(WithdrawalState.SIGNED)
            await self._finalize(receipt.amount, receipt.signature)
            return self.flow
        except BridgeError as e:
            await self._fail(e)
            raise

    async def _finalize(self, amount: int, signature: bytes) -> None:
        # Not retried: the signature is single-use per nonce.
        handle = await self.primary.finalize_withdrawal(amount, signature, self._primary_token_contract())
        await handle.wait(confirmations=self.confirmations)
        self.flow.finalization = handle
        await self._transition(WithdrawalState.FINALIZED)
        logger.info(f"Finalized withdrawal nonce {self.flow.nonce} for {self.owner} in {handle.tx_hash}")
