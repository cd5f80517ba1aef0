"""
Exception hierarchy for Cloud Capsule.

All domain exceptions inherit from CapsuleError, which carries the HTTP
status the API layer answers with and a message that is safe to show to the
caller.

    - ValidationError (400): missing or malformed input
    - Unauthenticated (401): no identity, bad token, bad credentials
    - Sealed (403): mutation attempted on an already-open capsule
    - NotFound (404): no matching record owned by the caller
    - StoreError (500): persistence failure; details stay in the log
"""

from typing import Any, Dict


class CapsuleError(Exception):
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str = "") -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message}


class ValidationError(CapsuleError):
    status_code = 400
    default_message = "Invalid input"


class Unauthenticated(CapsuleError):
    status_code = 401
    default_message = "Not authenticated"


class Sealed(CapsuleError):
    status_code = 403
    default_message = "Cannot edit an opened capsule"


class NotFound(CapsuleError):
    status_code = 404
    default_message = "Capsule not found"


class StoreError(CapsuleError):
    status_code = 500
    default_message = "Database error"
