# app/core/errors.py
"""
Error taxonomy shared by every manager screen.

ValidationError  -> raised before any store call, carries per-field messages
StoreError       -> the backing store (or object storage) rejected a request
SoftWarning      -> a secondary cleanup step failed; logged, never raised
ResolutionFailure-> an image reference could not be turned into a URL
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional


class PortalError(Exception):
    """Base class for errors raised by the admin portal."""


class ValidationError(PortalError):
    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        joined = "; ".join(f"{k}: {v}" for k, v in self.errors.items())
        super().__init__(joined or "Invalid input")

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls({field: message})


class StoreError(PortalError):
    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class StorageError(StoreError):
    """Object storage rejected an upload, download, remove or signing request."""


class ResolutionFailure(PortalError):
    """Image reference could not be resolved; callers degrade to a placeholder."""


@dataclass(frozen=True)
class SoftWarning:
    action: str
    message: str

    def __str__(self) -> str:
        return f"{self.action}: {self.message}"
