"""
HTTP surface of the reminder engine.
"""
