"""
Slot claiming and reassignment.

All decisions about who holds a slot are made on records read through a
:class:`~booking.store.SlotTransaction`, and acted on by writes in the
same transaction.  The read-only :func:`is_slot_available` exists for
the public availability check and must not be used to authorise a
write.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

from booking.exceptions import SlotConflictError
from booking.models import Appointment
from booking.services.timeslots import PENDING_OWNER, normalize_time, parse_date, same_time, slot_key
from booking.store import SlotStore, SlotTransaction

logger = logging.getLogger(__name__)


class SlotAvailability(str, enum.Enum):
    AVAILABLE = 'available'
    CONFLICT = 'conflict'


@dataclass
class SlotChange:
    """What a reassignment did to the slot records."""
    key: Optional[str] = None
    released: list[str] = field(default_factory=list)
    skipped: bool = False

    @property
    def mutated(self) -> bool:
        return not self.skipped and (self.key is not None or bool(self.released))


def owner_token(doctor_id) -> str:
    return str(doctor_id) if doctor_id else PENDING_OWNER


def check_conflict(tx: SlotTransaction, key: str, appointment_id: Optional[str]) -> SlotAvailability:
    """Is ``key`` free for ``appointment_id``?

    A record held by the same appointment is not a conflict.
    """
    record = tx.get(key)
    if record is None or (appointment_id and record.appointment_id == appointment_id):
        return SlotAvailability.AVAILABLE
    return SlotAvailability.CONFLICT


def is_slot_available(store: SlotStore, key: str) -> bool:
    return store.get(key) is None


def _slot_fields(owner: str, date, time: str, appointment_id: str) -> dict:
    return {
        'owner': owner,
        'appointment_id': appointment_id,
        'appointment_date': parse_date(date),
        'appointment_time': normalize_time(time),
    }


def claim_slot(tx: SlotTransaction, *, owner: str, date, time: str, appointment_id: Optional[str] = None) -> str:
    """Check ``owner``'s slot at date/time and return its key.

    Raises :class:`SlotConflictError` when another appointment holds it.
    The caller writes the record with :func:`write_claim` once the
    appointment id is known.
    """
    key = slot_key(owner, date, time)
    if check_conflict(tx, key, appointment_id) is SlotAvailability.CONFLICT:
        logger.info('Slot %s already held, rejecting claim', key)
        raise SlotConflictError(key)
    return key


def write_claim(tx: SlotTransaction, key: str, *, owner: str, date, time: str, appointment_id: str) -> None:
    tx.set(key, **_slot_fields(owner, date, time, appointment_id))


def slot_unchanged(appointment: Appointment, doctor_id, date, time: str) -> bool:
    return (
        str(appointment.doctor_id or '') == str(doctor_id or '')
        and appointment.appointment_date == parse_date(date)
        and same_time(appointment.appointment_time, time)
    )


def _old_keys(appointment: Appointment) -> list[str]:
    if not appointment.appointment_date or not appointment.appointment_time:
        return []
    keys = []
    if appointment.is_pending or not appointment.doctor_id:
        keys.append(slot_key(PENDING_OWNER, appointment.appointment_date, appointment.appointment_time))
    if appointment.doctor_id:
        keys.append(slot_key(appointment.doctor_id, appointment.appointment_date, appointment.appointment_time))
    return keys


def reassign_slot(store: SlotStore, appointment: Appointment, *, doctor_id, date, time: str) -> SlotChange:
    """Move ``appointment``'s slot claim to ``doctor_id`` at ``date``/``time``.

    Runs as one slot transaction: read the old pending record, the old
    doctor record and the target record; reject if the target belongs
    to another appointment; then delete the old records this appointment
    owns and upsert the target.  When doctor, date and normalized time
    all match the current assignment nothing is touched.

    Without a doctor there is no target: records the appointment still
    owns are released and nothing new is claimed.
    """
    if slot_unchanged(appointment, doctor_id, date, time):
        return SlotChange(skipped=True)

    owner = owner_token(doctor_id)
    new_key = slot_key(owner, date, time) if doctor_id else None
    old_keys = [k for k in _old_keys(appointment) if k != new_key]

    with store.transaction() as tx:
        old_records = {k: tx.get(k) for k in old_keys}
        if new_key and check_conflict(tx, new_key, appointment.id) is SlotAvailability.CONFLICT:
            logger.info('Slot %s held by another appointment, %s not moved', new_key, appointment.id)
            raise SlotConflictError(new_key)

        released = []
        for key, record in old_records.items():
            if record is not None and record.appointment_id == appointment.id:
                tx.delete(key)
                released.append(key)
        if new_key:
            write_claim(tx, new_key, owner=owner, date=date, time=time, appointment_id=appointment.id)

    logger.info('Appointment %s now holds %s (released %s)', appointment.id, new_key or '-', released or '-')
    return SlotChange(key=new_key, released=released)


def release_slots(store: SlotStore, appointment: Appointment) -> list[str]:
    """Delete every slot record held by ``appointment``."""
    keys = store.keys_for_appointment(appointment.id)
    if not keys:
        return []
    with store.transaction() as tx:
        records = {k: tx.get(k) for k in keys}
        released = [k for k, r in records.items() if r is not None and r.appointment_id == appointment.id]
        for key in released:
            tx.delete(key)
    return released
