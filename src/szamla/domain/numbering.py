"""Invoice number sequence."""

import logging
from typing import Optional

from szamla.database.base import Database
from szamla.domain.entities import SequenceCounter, format_invoice_number
from szamla.domain.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_SEQUENCE_KEY = "invoice"
DEFAULT_PREFIX = "INV"


class InvoiceNumberSequencer:
    """Hands out gapless invoice numbers of the form ``{prefix}-{number:04d}``.

    The counter lives only in the database; nothing is cached here, so any
    number of sequencers (threads, processes) can share one database.
    """

    def __init__(self, db: Database, default_prefix: str = DEFAULT_PREFIX):
        """Initialize invoice number sequencer.

        Args:
            db: Database instance
            default_prefix: Prefix used when a sequence is first created
        """
        self.db = db
        self.default_prefix = default_prefix

    def allocate_next(self, sequence_key: str = DEFAULT_SEQUENCE_KEY) -> str:
        """Allocate the next invoice number.

        The number is consumed as soon as this returns, whether or not the
        caller goes on to use it successfully.

        Args:
            sequence_key: Sequence to allocate from

        Returns:
            Formatted invoice number, e.g. ``INV-0007``

        Raises:
            ConcurrencyError: If the allocation could not be serialized
        """
        number = self.db.allocate_next_number(sequence_key, self.default_prefix)
        logger.info("Allocated invoice number %s from sequence %r", number, sequence_key)
        return number

    def peek_next(self, sequence_key: str = DEFAULT_SEQUENCE_KEY) -> str:
        """Return the number the next allocation would hand out.

        For display only: by the time it is used another caller may have
        taken it.
        """
        counter = self.db.get_sequence_counter(sequence_key)
        if counter is None:
            return format_invoice_number(self.default_prefix, 1)
        return counter.preview()

    def get_counter(self, sequence_key: str = DEFAULT_SEQUENCE_KEY) -> Optional[SequenceCounter]:
        """Return the stored counter state, or None if the sequence was never used."""
        return self.db.get_sequence_counter(sequence_key)

    def configure(
        self,
        prefix: Optional[str] = None,
        next_number: Optional[int] = None,
        sequence_key: str = DEFAULT_SEQUENCE_KEY,
    ) -> SequenceCounter:
        """Change the prefix or move the counter forward.

        Args:
            prefix: New prefix (keeps the current one if None)
            next_number: Next number to hand out (keeps the current one if None)
            sequence_key: Sequence to configure

        Returns:
            The updated counter

        Raises:
            ValidationError: If the prefix is blank, the number is below 1 or
                lower than the current next number
        """
        current = self.db.get_sequence_counter(sequence_key)

        if prefix is None:
            prefix = current.prefix if current is not None else self.default_prefix
        prefix = prefix.strip()
        if not prefix:
            raise ValidationError("Invoice number prefix cannot be empty")

        if next_number is None:
            next_number = current.next_number if current is not None else 1
        if next_number < 1:
            raise ValidationError("Next invoice number must be at least 1")

        counter = self.db.set_sequence_counter(sequence_key, prefix, next_number)
        logger.info("Invoice number sequence %r set to %s", sequence_key, counter.preview())
        return counter
