"""Core Application Layer: chat session, operator commands and the command handler.

Depends on domain interfaces; concrete adapters are injected by main.py.
"""
