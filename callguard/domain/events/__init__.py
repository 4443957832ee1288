"""Domain events emitted by the resilience layer.

Retry attempts and circuit transitions are published to a listener so that
logging or metrics can observe them without being wired into the executor.
"""
