"""Transaction service for atomic balance updates."""
from dataclasses import dataclass
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select, update
from sqlalchemy.orm.attributes import set_committed_value
from uuid import UUID
import uuid
import logging

from arena.config import get_settings
from arena.models.base import TransactionType
from arena.models.player import Player
from arena.models.transaction import WalletTransaction
from arena.utils import lock_client
from arena.utils.exceptions import InsufficientBalanceError, PlayerNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChallengeLedgerSummary:
    """Money that moved for one challenge, by entry type."""
    stakes: int
    refunds: int
    payouts: int
    fee: int

    @property
    def balanced(self) -> bool:
        """Conservation: every staked unit was refunded, paid out, or retained as fee."""
        return self.stakes == self.refunds + self.payouts + self.fee

    @property
    def held(self) -> int:
        """Stakes still in escrow (non-zero only before a terminal state)."""
        return self.stakes - self.refunds - self.payouts - self.fee


class TransactionService:
    """Wallet ledger: the single source of truth for money movement."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def debit(
        self,
        player_id: UUID,
        amount: int,
        trans_type: TransactionType,
        reference_id: UUID | None = None,
        notes: str | None = None,
        auto_commit: bool = False,
    ) -> WalletTransaction:
        """Debit ``amount`` from the player, failing if the balance would go negative."""
        if amount <= 0:
            raise ValueError(f"Debit amount must be positive, got {amount}")
        return await self.create_transaction(
            player_id, -amount, trans_type, reference_id=reference_id, notes=notes, auto_commit=auto_commit
        )

    async def credit(
        self,
        player_id: UUID,
        amount: int,
        trans_type: TransactionType,
        reference_id: UUID | None = None,
        notes: str | None = None,
        auto_commit: bool = False,
    ) -> WalletTransaction:
        """Credit ``amount`` to the player."""
        if amount <= 0:
            raise ValueError(f"Credit amount must be positive, got {amount}")
        return await self.create_transaction(
            player_id, amount, trans_type, reference_id=reference_id, notes=notes, auto_commit=auto_commit
        )

    async def create_transaction(
        self,
        player_id: UUID,
        amount: int,
        trans_type: TransactionType,
        reference_id: UUID | None = None,
        notes: str | None = None,
        auto_commit: bool = False,
    ) -> WalletTransaction:
        """
        Apply a signed balance change and append the ledger entry.

        The balance check and the change are one conditional UPDATE, so two
        debits can never both pass a stale balance check. Writes for a single
        player are additionally serialized by the ``wallet:{player_id}`` lock.

        When ``reference_id`` is set the entry is idempotent per
        ``(player, reference, type)``: a repeated call returns the existing
        entry and leaves the balance untouched.

        Args:
            player_id: Player UUID
            amount: Signed amount (negative for debits)
            trans_type: Ledger entry type
            reference_id: Related challenge
            notes: Free-form audit note
            auto_commit: If True, commits immediately. If False, caller must commit.

        Returns:
            The applied (or previously applied) transaction

        Raises:
            InsufficientBalanceError: If balance would go negative
            PlayerNotFoundError: If the player does not exist
        """
        trans_type = TransactionType(trans_type)
        lock_name = f"wallet:{player_id}"
        async with lock_client.lock(lock_name, timeout=self.settings.wallet_lock_timeout_seconds):
            if reference_id is not None:
                existing = await self._find_entry(player_id, reference_id, trans_type)
                if existing is not None:
                    logger.info(
                        f"Ledger entry already applied: player={player_id}, type={trans_type.value}, "
                        f"reference={reference_id}"
                    )
                    return existing

            stmt = (
                update(Player)
                .where(Player.player_id == player_id)
                .values(balance=Player.balance + amount)
                .returning(Player.balance)
                .execution_options(synchronize_session=False)
            )
            if amount < 0:
                stmt = stmt.where(Player.balance >= -amount)

            result = await self.db.execute(stmt)
            new_balance = result.scalar_one_or_none()

            if new_balance is None:
                current = await self.db.execute(select(Player.balance).where(Player.player_id == player_id))
                current_balance = current.scalar_one_or_none()
                if current_balance is None:
                    raise PlayerNotFoundError(f"Player not found: {player_id}")
                raise InsufficientBalanceError(
                    f"Insufficient balance: {current_balance} + {amount} = {current_balance + amount} < 0"
                )

            await self._sync_loaded_player(player_id, new_balance)

            transaction = WalletTransaction(
                transaction_id=uuid.uuid4(),
                player_id=player_id,
                amount=amount,
                type=trans_type.value,
                reference_id=reference_id,
                balance_after=new_balance,
                notes=notes,
            )
            self.db.add(transaction)
            await self.db.flush()

            if auto_commit:
                await self.db.commit()

        logger.info(
            f"Transaction created: player={player_id}, amount={amount}, type={trans_type.value}, "
            f"reference={reference_id}, new_balance={new_balance}, auto_commit={auto_commit}"
        )
        return transaction

    async def record_platform_fee(self, challenge_id: UUID, amount: int) -> WalletTransaction:
        """Append the platform's retained share of a settled challenge.

        ``amount`` may be negative when an admin-authored pot pays out more
        than was staked. The caller commits.
        """
        result = await self.db.execute(
            select(WalletTransaction).where(
                WalletTransaction.player_id.is_(None),
                WalletTransaction.reference_id == challenge_id,
                WalletTransaction.type == TransactionType.FEE.value,
            )
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            return existing

        fee_entry = WalletTransaction(
            transaction_id=uuid.uuid4(),
            player_id=None,
            amount=amount,
            type=TransactionType.FEE.value,
            reference_id=challenge_id,
        )
        self.db.add(fee_entry)
        await self.db.flush()
        logger.info(f"Platform fee recorded: challenge={challenge_id}, amount={amount}")
        return fee_entry

    async def get_challenge_entries(
        self,
        challenge_id: UUID,
        trans_type: TransactionType | None = None,
    ) -> list[WalletTransaction]:
        """All ledger entries tagged with the challenge, oldest first."""
        stmt = select(WalletTransaction).where(WalletTransaction.reference_id == challenge_id)
        if trans_type is not None:
            stmt = stmt.where(WalletTransaction.type == TransactionType(trans_type).value)
        result = await self.db.execute(stmt.order_by(WalletTransaction.created_at))
        return list(result.scalars().all())

    async def challenge_ledger_summary(self, challenge_id: UUID) -> ChallengeLedgerSummary:
        """Sum the challenge's ledger entries by type."""
        result = await self.db.execute(
            select(WalletTransaction.type, func.coalesce(func.sum(WalletTransaction.amount), 0))
            .where(WalletTransaction.reference_id == challenge_id)
            .group_by(WalletTransaction.type)
        )
        totals = {row[0]: int(row[1]) for row in result.all()}
        return ChallengeLedgerSummary(
            stakes=-totals.get(TransactionType.STAKE_HOLD.value, 0),
            refunds=totals.get(TransactionType.REFUND.value, 0),
            payouts=totals.get(TransactionType.PAYOUT.value, 0),
            fee=totals.get(TransactionType.FEE.value, 0),
        )

    async def admin_adjust_balance(
        self,
        player_id: UUID,
        amount: int,
        admin_id: UUID,
        notes: str | None = None,
    ) -> WalletTransaction:
        """Manual balance correction by an admin (positive credits, negative deducts)."""
        if amount == 0:
            raise ValueError("Adjustment amount must be non-zero")
        trans_type = TransactionType.ADMIN_CREDIT if amount > 0 else TransactionType.ADMIN_DEBIT
        audit_note = f"by {admin_id}" + (f": {notes}" if notes else "")
        transaction = await self.create_transaction(
            player_id, amount, trans_type, notes=audit_note[:255], auto_commit=False
        )
        await self.db.commit()
        return transaction

    async def get_player_transactions(
        self,
        player_id: UUID,
        limit: int = 50,
        offset: int = 0,
    ) -> list[WalletTransaction]:
        """Get player transaction history."""
        result = await self.db.execute(
            select(WalletTransaction)
            .where(WalletTransaction.player_id == player_id)
            .order_by(WalletTransaction.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def _find_entry(
        self,
        player_id: UUID,
        reference_id: UUID,
        trans_type: TransactionType,
    ) -> WalletTransaction | None:
        result = await self.db.execute(
            select(WalletTransaction).where(
                WalletTransaction.player_id == player_id,
                WalletTransaction.reference_id == reference_id,
                WalletTransaction.type == trans_type.value,
            )
        )
        return result.scalar_one_or_none()

    async def _sync_loaded_player(self, player_id: UUID, new_balance: int) -> None:
        """Keep an already-loaded Player instance in step with the database."""
        for obj in self.db.identity_map.values():
            if isinstance(obj, Player) and obj.player_id == player_id:
                set_committed_value(obj, "balance", new_balance)
