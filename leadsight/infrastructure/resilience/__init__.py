"""API Resilience Implementations.

Contains the backoff calculator, the error classifier, the credential pool
and the resilient caller that ties them together.
Bounded Context: API Resilience
"""
