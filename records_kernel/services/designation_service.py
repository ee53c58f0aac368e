"""
Service layer for the shared designation list.

Designations are the job titles / offices offered in record forms.  The
list is ordered, names are stripped, non-empty and unique.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import delete, func, select

from records_kernel.exceptions import (
    DesignationExistsError,
    DesignationNotFoundError,
    ValidationError,
)
from records_kernel.logging_config import get_logger
from records_kernel.models.designation import Designation
from records_kernel.services.base import BaseService

logger = get_logger("services.designation")


def _clean(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Designation name is required", "designation")
    return cleaned


class DesignationService(BaseService[Designation]):
    """Maintains the ordered list of designations."""

    def _rows(self) -> list[Designation]:
        return list(
            self.session.execute(
                select(Designation).order_by(Designation.position, Designation.name)
            ).scalars()
        )

    def _find(self, name: str) -> Designation | None:
        return self.session.execute(
            select(Designation).where(Designation.name == name)
        ).scalar_one_or_none()

    def list(self) -> list[str]:
        """Designation names in display order."""
        return [row.name for row in self._rows()]

    def add(self, name: str) -> list[str]:
        """
        Append a designation.

        Raises:
            ValidationError: If ``name`` is blank.
            DesignationExistsError: If ``name`` is already listed.
        """
        name = _clean(name)
        if self._find(name) is not None:
            raise DesignationExistsError(name)
        next_position = self.session.execute(
            select(func.coalesce(func.max(Designation.position), -1) + 1)
        ).scalar_one()
        self.session.add(Designation(name=name, position=next_position))
        self.session.flush()
        logger.info("designation_added", extra={"designation": name})
        return self.list()

    def rename(self, old_name: str, new_name: str) -> list[str]:
        """Rename a designation in place, keeping its position."""
        old_name = _clean(old_name)
        new_name = _clean(new_name)
        row = self._find(old_name)
        if row is None:
            raise DesignationNotFoundError(old_name)
        if new_name != old_name and self._find(new_name) is not None:
            raise DesignationExistsError(new_name)
        row.name = new_name
        self.session.flush()
        logger.info(
            "designation_renamed",
            extra={"designation": new_name, "previous": old_name},
        )
        return self.list()

    def remove(self, name: str) -> list[str]:
        name = _clean(name)
        row = self._find(name)
        if row is None:
            raise DesignationNotFoundError(name)
        self.session.delete(row)
        self.session.flush()
        logger.info("designation_removed", extra={"designation": name})
        return self.list()

    def replace_all(self, names: Iterable[str]) -> list[str]:
        """
        Replace the whole list.

        Blank entries are dropped; duplicates raise DesignationExistsError
        before anything is written.
        """
        cleaned: list[str] = []
        for raw in names:
            if not (raw or "").strip():
                continue
            name = raw.strip()
            if name in cleaned:
                raise DesignationExistsError(name)
            cleaned.append(name)

        self.session.execute(delete(Designation))
        for position, name in enumerate(cleaned):
            self.session.add(Designation(name=name, position=position))
        self.session.flush()
        logger.info("designations_replaced", extra={"count": len(cleaned)})
        return cleaned

    def seed_defaults(self, names: Iterable[str]) -> list[str]:
        """Install ``names`` only when the list is empty; returns the current list."""
        if self._rows():
            return self.list()
        return self.replace_all(names)
