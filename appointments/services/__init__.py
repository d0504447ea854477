"""Utility services for the appointments app."""
