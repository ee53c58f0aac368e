"""
Module: records_kernel.models.designation
Responsibility: ORM persistence for the shared list of designations (job
    titles / offices) offered on record forms.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - name is unique (uq_designation_name).
    - position orders the list as the clerk arranged it.
"""

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from records_kernel.db.base import Base


class Designation(Base):
    """A selectable designation name."""

    __tablename__ = "designations"

    __table_args__ = (
        UniqueConstraint("name", name="uq_designation_name"),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return f"<Designation {self.position}: {self.name}>"
