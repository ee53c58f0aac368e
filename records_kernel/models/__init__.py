"""Domain models for the records kernel."""

from records_kernel.models.designation import Designation
from records_kernel.models.record import Record, RemarksHistoryEntry
from records_kernel.models.user import User, UserSession

__all__ = [
    "Designation",
    "Record",
    "RemarksHistoryEntry",
    "User",
    "UserSession",
    "import_all_models",
]


def import_all_models() -> None:
    """Import every module that declares tables so Base.metadata is complete."""
    # SequenceCounter lives beside the service that owns it
    import records_kernel.services.sequence_service  # noqa: F401
