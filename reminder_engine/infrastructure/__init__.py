"""
Infrastructure adapters: scheduler, messaging provider and persistence.
"""
