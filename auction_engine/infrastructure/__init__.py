"""
Infrastructure: locks, persistence adapters, event bus, notifications
"""
