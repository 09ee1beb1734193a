"""
Error taxonomy for player account provisioning.

Every failure the HTTP layer can report derives from ``ProvisioningError`` and
carries the status code and JSON body it should be rendered with.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ProvisioningError(Exception):
    """Base class for all classified provisioning failures."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ProvisioningError):
    """Bad input shape or range; the caller can correct it."""

    status_code = 400
    code = "bad_request"


class AuthorizationError(ProvisioningError):
    """Missing or invalid credential."""

    status_code = 401
    code = "unauthorized"


class NotFoundError(ProvisioningError):
    """Valid credential, but no profile row for it."""

    status_code = 404
    code = "not_found"


class ConflictError(ProvisioningError):
    """The resource is already provisioned."""

    status_code = 409
    code = "conflict"


class ConfigurationError(ProvisioningError):
    """Server or network misconfiguration. Needs operator action."""

    code = "configuration_error"


class InconsistencyError(ProvisioningError):
    """The ledger write succeeded but the profile store update did not."""

    code = "inconsistent_state"


class StoreError(ProvisioningError):
    """The profile store rejected a read or write."""

    code = "store_error"


class FaultKind(str, Enum):
    FUNDING = "funding"
    COLLISION = "collision"
    OTHER = "other"


class LedgerFault(ProvisioningError):
    """A ledger submission or query was rejected."""

    code = "ledger_fault"

    def __init__(self, message: str, kind: FaultKind = FaultKind.OTHER, details: Optional[str] = None):
        super().__init__(message, details)
        self.kind = kind

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["fault"] = self.kind.value
        return body
