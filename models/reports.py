"""Report models returned by the reminder cycle and the duplicate reconciler."""

from datetime import date, datetime, time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Why a client group was not marked as reminded."""

    NOTIFIER_ERROR = "notifier_error"
    NOTIFIER_TIMEOUT = "notifier_timeout"
    STORE_ERROR = "store_error"


class DispatchFailure(BaseModel):
    """A client group whose reminder did not complete."""

    phone: str
    appointment_ids: List[int]
    kind: FailureKind
    detail: str = ""
    message_id: Optional[str] = Field(
        None, description="Set when the message went out but marking failed"
    )

    class Config:
        use_enum_values = True


class CycleReport(BaseModel):
    """Aggregate outcome of one reminder cycle."""

    target_date: date
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    appointments_total: int = 0
    clients_notified: int = 0
    appointments_marked: int = 0
    already_sent: int = 0
    invalid_phone_ids: List[int] = Field(default_factory=list)
    unreadable_ids: List[Optional[int]] = Field(
        default_factory=list, description="Rows skipped because they failed validation"
    )
    failures: List[DispatchFailure] = Field(default_factory=list)
    aborted: bool = False

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    def summary(self) -> str:
        return (
            f"{self.target_date.isoformat()}: "
            f"{self.clients_notified} clients notified, "
            f"{self.appointments_marked} appointments marked, "
            f"{self.already_sent} already sent, "
            f"{len(self.invalid_phone_ids)} invalid phones, "
            f"{len(self.unreadable_ids)} unreadable, "
            f"{self.failure_count} failed"
            + (" (aborted)" if self.aborted else "")
        )


class DuplicateKey(BaseModel):
    """Identity of a booking of record."""

    date: date
    start_time: time
    client_id: int
    stylist_id: int
    service_id: int

    class Config:
        frozen = True


class DuplicateGroup(BaseModel):
    """Appointments sharing one booking identity; ids sorted ascending."""

    key: DuplicateKey
    appointment_ids: List[int]

    @property
    def keep_id(self) -> int:
        return self.appointment_ids[0]

    @property
    def delete_ids(self) -> List[int]:
        return self.appointment_ids[1:]


class ReconcileReport(BaseModel):
    """Audit record of one duplicate reconciliation run."""

    groups_found: int = 0
    kept_ids: List[int] = Field(default_factory=list)
    deleted_ids: List[int] = Field(default_factory=list)
    dry_run: bool = False

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_ids)
