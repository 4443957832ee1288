"""API Resilience Implementations.

Contains services for retrying remote calls with exponential backoff,
classifying failures, and fencing off failing endpoints with circuit breakers.
Bounded Context: API Resilience
"""
