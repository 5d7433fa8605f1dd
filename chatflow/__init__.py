"""Chatflow - compile visual conversation-flow graphs into executable flows."""

__version__ = "1.0.0"
