"""Appointment booking app for the hospital portal.

Models, slot store, booking services and the API routes used by the
patient, doctor and front-desk screens and the WhatsApp bot.
"""
