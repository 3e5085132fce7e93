"""
SequenceService -- journal number allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence values per (company, financial
    year) and formats them as journal numbers (``JV-202425-000001``).  Uses a
    dedicated counter table with row-level locking (``SELECT ... FOR UPDATE``)
    so concurrent draft creation never hands out the same number.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by JournalService, ReversalService and ClosingService.

Invariants enforced:
    - Monotonic and never reused: the locked counter row is the only source
      of the next value.  MAX(journal_number)+1 is never used, so a
      discarded draft's number is never handed out again.
    - Transactional: the increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

from uuid import UUID

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from ledger_config import JournalSettings
from ledger_kernel.db.base import Base
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    # e.g. "journal_entry:<company uuid>:2024-25"
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value.  The increment is committed with the caller's
        transaction.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    JOURNAL_ENTRY = "journal_entry"

    def __init__(self, session: Session, journal_settings: JournalSettings | None = None):
        self._session = session
        self._journal_settings = journal_settings or JournalSettings()

    def _lock_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Postconditions:
            - Returns an integer > 0 strictly greater than any previously
              returned value for this sequence name.
            - The counter row is locked until the transaction completes.
        """
        counter = self._lock_counter(sequence_name)

        if counter is None:
            # First use: another session may be creating the same row, so
            # insert inside a savepoint and fall back to the locked read.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._lock_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    @classmethod
    def journal_sequence_name(cls, company_id: UUID, financial_year: str) -> str:
        return f"{cls.JOURNAL_ENTRY}:{company_id}:{financial_year}"

    def next_journal_number(self, company_id: UUID, financial_year: str) -> str:
        """
        Allocate the next journal number for a company and financial year.

        Example:
            next_journal_number(company, "2024-25") -> "JV-202425-000001"
        """
        value = self.next_value(self.journal_sequence_name(company_id, financial_year))
        settings = self._journal_settings
        fy_digits = financial_year.replace("-", "")
        return f"{settings.number_prefix}-{fy_digits}-{value:0{settings.sequence_width}d}"
