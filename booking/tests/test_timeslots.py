import datetime

import pytest

from booking.exceptions import BookingValidationError
from booking.services.timeslots import (
    PENDING_OWNER,
    generate_time_slots,
    normalize_time,
    parse_date,
    same_time,
    slot_key,
    visiting_windows,
)


@pytest.mark.parametrize('raw, expected', [
    ('09:00', '09:00'),
    ('9:00', '09:00'),
    ('9:5', '09:05'),
    ('09-30', '09:30'),
    ('14.45', '14:45'),
    ('09:00:00', '09:00'),
    ('0930', '09:30'),
    ('9 am', '09:00'),
    ('9:00 AM', '09:00'),
    ('12:15 am', '00:15'),
    ('12 pm', '12:00'),
    ('2:30 p.m.', '14:30'),
    ('0930 pm', '21:30'),
])
def test_normalize_time_accepts_loose_input(raw, expected):
    assert normalize_time(raw) == expected
    assert normalize_time(normalize_time(raw)) == expected


@pytest.mark.parametrize('raw', ['', '   ', 'noon', '25:00', '10:75', '13 pm', '0 am', None])
def test_normalize_time_rejects_garbage(raw):
    with pytest.raises(BookingValidationError):
        normalize_time(raw)


def test_slot_key_replaces_colons():
    assert slot_key(7, '2024-01-15', '9:00 am') == '7_2024-01-15_09-00'
    assert slot_key(PENDING_OWNER, datetime.date(2024, 1, 15), '14:30') == 'PENDING_2024-01-15_14-30'


def test_slot_key_same_for_equivalent_times():
    assert slot_key('3', '2024-01-15', '09-00') == slot_key('3', '2024-01-15', '9:00 AM')


def test_slot_key_requires_owner():
    with pytest.raises(BookingValidationError):
        slot_key('', '2024-01-15', '09:00')


def test_parse_date():
    assert parse_date('2024-01-15') == datetime.date(2024, 1, 15)
    assert parse_date(datetime.datetime(2024, 1, 15, 10, 0)) == datetime.date(2024, 1, 15)
    with pytest.raises(BookingValidationError):
        parse_date('15/01/2024')


def test_same_time():
    assert same_time('9:00 am', '09:00')
    assert not same_time('09:00', '09:15')
    assert not same_time(None, '09:00')


def test_generate_time_slots_steps_inside_windows():
    slots = generate_time_slots([('09:00', '10:00'), ('14:00', '14:30')], step=15)
    assert slots == ['09:00', '09:15', '09:30', '09:45', '14:00', '14:15']


def test_visiting_windows_closed_on_sunday():
    assert visiting_windows('2024-01-14') == []
    assert visiting_windows('2024-01-15')[0] == ('09:00', '13:00')
