"""
Outbound WhatsApp messages through the Twilio REST API.

:meth:`TwilioWhatsAppMessenger.send` never raises: configuration gaps,
bad recipients, HTTP errors and network failures all come back as a
failed :class:`SendResult` carrying a :class:`DependencyError`.  Callers
log the failure and carry on.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

import requests
from django.conf import settings
from django.utils.module_loading import import_string

from booking.exceptions import DependencyError

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = 'https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json'
PROVIDER = 'twilio'


@dataclass
class SendResult:
    success: bool
    sid: Optional[str] = None
    status: Optional[str] = None
    error: Optional[DependencyError] = None

    @property
    def error_code(self):
        return self.error.code if self.error else None

    @classmethod
    def failed(cls, message: str, *, code=None) -> 'SendResult':
        return cls(success=False, error=DependencyError(message, code=code, provider=PROVIDER))


def format_whatsapp_recipient(raw: Optional[str], default_country_code: Optional[str] = None) -> Optional[str]:
    """Return ``whatsapp:+<digits>`` for a loosely typed phone number.

    Ten-digit local numbers get ``default_country_code`` prepended.
    """
    if not raw or not raw.strip():
        return None
    number = raw.strip()
    if number.lower().startswith('whatsapp:'):
        number = number[len('whatsapp:'):]
    number = re.sub(r'[^+\d]', '', number)
    if not number.lstrip('+'):
        return None
    if not number.startswith('+'):
        country = default_country_code or settings.WHATSAPP_DEFAULT_COUNTRY_CODE
        if len(number) == 10 and country.startswith('+'):
            number = f'{country}{number}'
        else:
            number = f'+{number}'
    return f'whatsapp:{number}'


class TwilioWhatsAppMessenger:
    def __init__(self, *, account_sid=None, auth_token=None, sender=None, timeout=None, session=None):
        self.account_sid = account_sid if account_sid is not None else settings.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token if auth_token is not None else settings.TWILIO_AUTH_TOKEN
        self.sender = sender if sender is not None else settings.TWILIO_WHATSAPP_FROM
        self.timeout = timeout or settings.TWILIO_TIMEOUT
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.sender)

    def _from(self) -> str:
        return self.sender if self.sender.startswith('whatsapp:') else f'whatsapp:{self.sender}'

    def send(self, to: Optional[str], body: str) -> SendResult:
        if not self.configured:
            return SendResult.failed('Twilio not configured', code='not_configured')
        recipient = format_whatsapp_recipient(to)
        if not recipient:
            return SendResult.failed('No valid recipient for WhatsApp notification', code='invalid_recipient')

        url = TWILIO_MESSAGES_URL.format(sid=self.account_sid)
        try:
            r = self.session.post(
                url,
                data={'From': self._from(), 'To': recipient, 'Body': body},
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            return SendResult.failed(f'Twilio request failed: {e}', code='network_error')

        try:
            data = r.json()
        except ValueError:
            data = {}
        if r.status_code >= 400:
            message = data.get('message') or f'HTTP {r.status_code}'
            return SendResult.failed(f'Twilio error: {message}', code=data.get('code') or r.status_code)
        return SendResult(success=True, sid=data.get('sid'), status=data.get('status'))


def get_messenger():
    return import_string(settings.BOOKING_MESSENGER)()


def _long_date(d) -> str:
    return f"{d:%A}, {d.day} {d:%B} {d.year}"


def _twelve_hour(hhmm: str) -> str:
    hours, minutes = (int(x) for x in hhmm.split(':'))
    suffix = 'am' if hours < 12 else 'pm'
    return f"{hours % 12 or 12}:{minutes:02d} {suffix}"


def format_confirmation_message(appointment) -> str:
    """Confirmation text sent once a receptionist assigns the doctor."""
    doctor = appointment.doctor_name or 'To be assigned'
    if appointment.doctor_specialization:
        doctor = f"{doctor} ({appointment.doctor_specialization})"
    paid = appointment.payment_amount or 0
    remaining = appointment.remaining_amount or 0
    amount_line = f"₹{paid} (₹{remaining} due)" if remaining > 0 else f"₹{paid} (paid)"
    lines = [
        "*Appointment Confirmed!*",
        "",
        f"Hi {appointment.patient_name or 'Patient'},",
        "",
        "Your appointment has been confirmed and booked successfully by our receptionist.",
        "",
        "*Appointment Details:*",
        f"• Doctor: {doctor}",
        f"• Date: {_long_date(appointment.appointment_date)}",
        f"• Time: {_twelve_hour(appointment.appointment_time)}",
        f"• Appointment ID: {appointment.id}",
    ]
    if appointment.chief_complaint:
        lines.append(f"• Reason: {appointment.chief_complaint}")
    lines += [
        "",
        "*Payment Information:*",
        f"• Method: {(appointment.payment_method or 'cash').upper()}",
        f"• Amount: {amount_line}",
        f"• Status: {'Paid' if appointment.payment_status == 'paid' else 'Pending'}",
        "",
        "If you need to reschedule or have any questions, reply here.",
    ]
    return "\n".join(lines)
