"""Domain Interfaces (Ports).

Abstract base classes for the AI provider clients and the user interface.
"""
