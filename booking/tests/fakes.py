"""Messenger doubles, importable by dotted path for ``BOOKING_MESSENGER``."""
from booking.services.messaging import SendResult


class RecordingMessenger:
    sent = []

    def send(self, to, body):
        self.sent.append((to, body))
        return SendResult(success=True, sid='SM-test', status='queued')


class FailingMessenger:
    def send(self, to, body):
        return SendResult.failed('Twilio error: unreachable', code=21610)


class RaisingMessenger:
    def send(self, to, body):
        raise RuntimeError('socket closed')
