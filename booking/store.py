"""
Slot record storage.

:class:`SlotStore` is the handle the booking services receive for
reading and writing slot records.  Its :meth:`SlotStore.transaction`
follows the document-transaction contract the booking logic is written
against: every read happens before any write, writes are buffered and
applied together when the block exits, and nothing is applied if the
block raises.

Reads inside a transaction lock the row (``SELECT ... FOR UPDATE``).
A record that does not exist yet cannot be locked, so two transactions
may both see a key as free; the slower insert then hits the primary key
and is reported as :class:`SlotConflictError`.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.module_loading import import_string

from booking.exceptions import SlotConflictError
from booking.models import AppointmentSlot

logger = logging.getLogger(__name__)

_UNSET = object()


class SlotTransaction:
    """Transaction-scoped view of the slot records.

    Obtained from :meth:`SlotStore.transaction`; not meant to be built
    directly.
    """

    def __init__(self, using: str) -> None:
        self.using = using
        self._reads: dict[str, Optional[AppointmentSlot]] = {}
        self._writes: list[tuple[str, str, dict]] = []

    def get(self, key: str) -> Optional[AppointmentSlot]:
        if self._writes:
            raise RuntimeError('slot transaction reads must happen before writes')
        if key not in self._reads:
            self._reads[key] = (
                AppointmentSlot.objects.using(self.using)
                .select_for_update()
                .filter(pk=key)
                .first()
            )
        return self._reads[key]

    def set(self, key: str, **fields) -> None:
        """Upsert the record at ``key``; ``fields`` are model field values."""
        self._writes.append(('set', key, fields))

    def delete(self, key: str) -> None:
        self._writes.append(('delete', key, {}))

    @property
    def pending_writes(self) -> list[tuple[str, str]]:
        return [(op, key) for op, key, _ in self._writes]

    def _commit(self) -> None:
        now = timezone.now()
        manager = AppointmentSlot.objects.using(self.using)
        for op, key, fields in self._writes:
            if op == 'delete':
                manager.filter(pk=key).delete()
                continue
            current = self._reads.get(key, _UNSET)
            values = dict(fields, updated_at=now)
            if current is not None and current is not _UNSET:
                manager.filter(pk=key).update(**values)
                continue
            values.setdefault('created_at', now)
            try:
                # savepoint so the failed insert does not poison the outer atomic block
                with transaction.atomic(using=self.using):
                    manager.create(pk=key, **values)
            except IntegrityError:
                logger.info('Slot %s was claimed concurrently', key)
                raise SlotConflictError(key) from None


class SlotStore:
    """ORM-backed slot record store."""

    def __init__(self, using: str = 'default') -> None:
        self.using = using

    def get(self, key: str) -> Optional[AppointmentSlot]:
        return AppointmentSlot.objects.using(self.using).filter(pk=key).first()

    def keys_for_appointment(self, appointment_id: str) -> list[str]:
        return list(
            AppointmentSlot.objects.using(self.using)
            .filter(appointment_id=appointment_id)
            .values_list('pk', flat=True)
        )

    @contextmanager
    def transaction(self) -> Iterator[SlotTransaction]:
        """Open an atomic block; buffered writes are applied on clean exit.

        Joins an enclosing ``transaction.atomic()`` when there is one, so
        callers can write the appointment row in the same commit.
        """
        with transaction.atomic(using=self.using):
            tx = SlotTransaction(self.using)
            yield tx
            tx._commit()


def get_slot_store() -> SlotStore:
    """Build the configured store; called at the request entry point."""
    return import_string(settings.BOOKING_SLOT_STORE)()
