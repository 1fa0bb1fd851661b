from __future__ import annotations

from typing import Literal

FetchErrorCategory = Literal["host_not_found", "connection_refused", "timeout", "http_status", "other"]


class ProbeError(Exception):
    """Base class for faults raised by providers. Chains recover from all of them."""


class TransportFault(ProbeError):
    """Network error, timeout or unusable HTTP status."""


class ConfigurationFault(ProbeError):
    """A required credential is missing. Expected and silent."""


class ProviderSemanticFailure(ProbeError):
    """The provider answered but flagged the answer as an error or left it empty."""


class FetchError(TransportFault):
    def __init__(self, category: FetchErrorCategory, message: str, status_code: int | None = None):
        super().__init__(message)
        self.category = category
        self.status_code = status_code

    def __str__(self) -> str:
        return f"{self.category}: {self.args[0]}"
