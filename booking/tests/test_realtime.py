from booking.realtime.consumers import AppointmentUpdatesConsumer


def _consumer(query_string: bytes) -> AppointmentUpdatesConsumer:
    consumer = AppointmentUpdatesConsumer()
    consumer.scope = {"query_string": query_string}
    return consumer


def test_requested_hospital_is_url_decoded():
    consumer = _consumer(b"token=abc&hospitalId=city%20care%2Fnorth")
    assert consumer._requested_hospital() == "city care/north"


def test_requested_hospital_missing_or_blank():
    assert _consumer(b"")._requested_hospital() is None
    assert _consumer(b"hospitalId=")._requested_hospital() is None
