# Overview: Domain error taxonomy shared by services and routes.

"""
Every failure the engine reports is a SalonPosError subclass carrying a
kind, an end-user message and optional structured details. Routes turn
them into JSON with the matching HTTP status; callers decide whether to
re-prompt, refresh or retry from the kind alone.
"""

from __future__ import annotations


class SalonPosError(Exception):
    """Base class for all engine errors."""

    kind = "error"
    http_status = 400
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind,
            "retryable": self.retryable,
            "details": self.details,
        }


class ValidationError(SalonPosError):
    """Bad input: missing client name, empty cart, malformed code."""

    kind = "validation"


class NotFoundError(ValidationError):
    """Referenced record does not exist."""

    kind = "not_found"
    http_status = 404


class InvalidStateError(SalonPosError):
    """Operation not legal for the record's current status."""

    kind = "invalid_state"
    http_status = 409


class InsufficientPaymentError(SalonPosError):
    """Cash received is less than the invoice total."""

    kind = "insufficient_payment"


class PromotionIneligibleError(SalonPosError):
    """
    A promotion failed one of the validator checks.

    `reason` is a stable code (expired, not_started, already_used, ...);
    the message is written for the end user and can be shown verbatim.
    """

    kind = "promotion_ineligible"
    http_status = 422

    def __init__(self, reason: str, message: str, details: dict | None = None):
        super().__init__(message, details={"reason": reason, **(details or {})})
        self.reason = reason


class PermissionDeniedError(SalonPosError):
    """The authorization context refused the actor."""

    kind = "permission_denied"
    http_status = 403


class PersistenceError(SalonPosError):
    """Store unreachable or write conflict. Safe to retry; never retried internally."""

    kind = "persistence"
    http_status = 503
    retryable = True
