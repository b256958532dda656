from typing import Any, Dict, Optional


class DomainError(ValueError):
    """Base class for errors the allocation engine reports to its callers."""

    kind = "domain_error"

    def context(self) -> Dict[str, Any]:
        return {}


class ValidationError(DomainError):
    """Input rejected before any datastore access."""

    kind = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def context(self) -> Dict[str, Any]:
        return {"field": self.field} if self.field else {}


class CapacityExceeded(DomainError):
    """Adding the requested hours would push some day above the cap."""

    kind = "capacity_exceeded"

    def __init__(
        self,
        max_other_hours: int,
        requested_hours: int,
        *,
        cap: int,
        merged: bool = False,
    ):
        self.max_other_hours = int(max_other_hours)
        self.requested_hours = int(requested_hours)
        self.cap = int(cap)
        self.merged = merged
        total = self.max_other_hours + self.requested_hours

        if merged:
            message = (
                f"Merging would exceed {cap} monthly hours. "
                f"Merged Hours: {self.requested_hours}h. "
                f"Max Other Hours in range: {self.max_other_hours}h. "
                f"Total: {total}h"
            )
        else:
            message = (
                f"Total allocation would exceed {cap}h on some dates. "
                f"Max existing: {self.max_other_hours}h. "
                f"Requested: {self.requested_hours}h. "
                f"Available: {max(cap - self.max_other_hours, 0)}h"
            )
        super().__init__(message)

    @property
    def total_hours(self) -> int:
        return self.max_other_hours + self.requested_hours

    def context(self) -> Dict[str, Any]:
        return {
            "max_other_hours": self.max_other_hours,
            "requested_hours": self.requested_hours,
            "total_hours": self.total_hours,
            "cap": self.cap,
            "merged": self.merged,
        }


class NotFound(DomainError):
    kind = "not_found"

    def __init__(self, entity: str, identifier: Any):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found")

    def context(self) -> Dict[str, Any]:
        return {"entity": self.entity, "identifier": self.identifier}


class PermissionDenied(DomainError):
    kind = "permission_denied"


class SetupIncomplete(DomainError):
    """The PTO project or the leave/holiday task is missing from the catalogs.

    This is an operator configuration problem, not a user error.
    """

    kind = "setup_incomplete"

    def __init__(self, missing: str):
        self.missing = missing
        super().__init__(f"Server setup incomplete: {missing} not configured")

    def context(self) -> Dict[str, Any]:
        return {"missing": self.missing}


class SyncFailure(DomainError):
    kind = "sync_failure"

    def __init__(self, message: str, assignment_id: Optional[int] = None):
        self.assignment_id = assignment_id
        super().__init__(message)

    def context(self) -> Dict[str, Any]:
        return {"assignment_id": self.assignment_id}
