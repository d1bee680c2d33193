"""Structured exceptions raised above the factory layer."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class DynadistError(Exception):
    """Base exception for all dynadist errors."""

    code: str = "UNKNOWN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly error payload."""
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"error": error}


class DistributionError(DynadistError):
    """Errors raised while constructing or using a distribution."""

    code = "DISTRIBUTION_ERROR"


class InvalidCombinationError(DistributionError):
    """The factory rejected the name/parameter combination."""

    code = "INVALID_COMBINATION"

    def __init__(
        self,
        message: str,
        name: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        payload = dict(details or {})
        if name is not None:
            payload.setdefault("name", name)
        self.name = name
        super().__init__(message, details=payload)


class UnknownDistributionError(InvalidCombinationError):
    """No registered family answers to the requested name."""

    code = "UNKNOWN_DISTRIBUTION"

    def __init__(self, name: str):
        super().__init__(f"Unknown distribution '{name}'.", name=name)


class MissingParameterError(InvalidCombinationError):
    """A required logical parameter was not supplied under any alias."""

    code = "MISSING_PARAMETER"

    def __init__(self, name: str, parameter: str, aliases: Sequence[str]):
        self.parameter = parameter
        self.aliases = tuple(aliases)
        spelled = ", ".join(self.aliases)
        super().__init__(
            f"Distribution '{name}' requires parameter '{parameter}' (accepted keys: {spelled}).",
            name=name,
            details={"parameter": parameter, "aliases": list(self.aliases)},
        )


class InvalidParameterError(InvalidCombinationError):
    """Parameters were found but rejected as outside the family's domain."""

    code = "INVALID_PARAMETER"

    def __init__(
        self,
        name: str,
        reason: str,
        parameters: dict[str, float] | None = None,
    ):
        self.reason = reason
        super().__init__(
            f"Invalid parameters for distribution '{name}': {reason}",
            name=name,
            details={"reason": reason, "parameters": dict(parameters or {})},
        )


class DistributionClosedError(DistributionError):
    """The distribution handle has already been released."""

    code = "DISTRIBUTION_CLOSED"

    def __init__(self, name: str):
        super().__init__(f"Distribution '{name}' has been closed.", details={"name": name})


class EmpiricalDataError(DynadistError):
    """Sample data cannot back an empirical distribution."""

    code = "EMPIRICAL_DATA"


__all__ = [
    "DynadistError",
    "DistributionError",
    "InvalidCombinationError",
    "UnknownDistributionError",
    "MissingParameterError",
    "InvalidParameterError",
    "DistributionClosedError",
    "EmpiricalDataError",
]
