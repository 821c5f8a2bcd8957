"""
Reminder engine domain layer.
"""
