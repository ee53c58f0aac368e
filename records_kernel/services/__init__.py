"""Services for the records kernel (write side)."""

from records_kernel.services.designation_service import DesignationService
from records_kernel.services.lifecycle_service import RecordLifecycleService
from records_kernel.services.record_store import RecordStore
from records_kernel.services.sequence_service import SequenceCounter, SequenceService
from records_kernel.services.tracking_service import (
    SCOPE_CUMULATIVE,
    SCOPE_DAILY,
    SEQUENCE_SCOPES,
    TrackingIdService,
)
from records_kernel.services.user_service import SessionToken, UserInfo, UserService

__all__ = [
    "DesignationService",
    "RecordLifecycleService",
    "RecordStore",
    "SequenceCounter",
    "SequenceService",
    "SCOPE_CUMULATIVE",
    "SCOPE_DAILY",
    "SEQUENCE_SCOPES",
    "TrackingIdService",
    "SessionToken",
    "UserInfo",
    "UserService",
]
