"""
Clinic reminder engine.

Reminder cadence, confirmation detection, channel anti-block governance and the
reschedule hand-off for dental clinic appointments.
"""

__version__ = "0.1.0"
