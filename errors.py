"""
Error taxonomy for the storefront core.

Validation failures are the caller's fault and are not retryable as-is.
Persistence failures and timeouts are retryable, but a timeout leaves the
outcome unknown: the write may still have landed.
"""
from __future__ import annotations


class StorefrontError(Exception):
    retryable = False


class ValidationError(StorefrontError):
    def __init__(self, rule: str, message: str):
        super().__init__(message)
        self.rule = rule
        self.message = message


class PersistenceError(StorefrontError):
    retryable = True


class PersistenceTimeoutError(StorefrontError):
    retryable = True


class NotificationError(StorefrontError):
    pass
