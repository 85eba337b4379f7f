"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Bank integration records
  9xxx: System

Only business errors live here. Infrastructure failures (store or cache
unreachable, slow calls) never surface as AppError: the resilience layer
turns them into empty results.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Bank integration ---

class DuplicateIdentityDniError(AppError):
    def __init__(self, identity_dni: str) -> None:
        super().__init__(
            1001, f"A record with identity document {identity_dni} already exists", 409
        )


class InvalidPayloadError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(1002, f"Invalid request payload: {detail}", 400)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
