"""Round-robin disk rotation anchored to a reference date."""

from __future__ import annotations

from datetime import date
from typing import Sequence
from uuid import UUID

from .backup_errors import NoActiveDisksConfigured, UnknownOrInactiveDisk
from .catalog import DiskSnapshot

# purpose: map a civil date onto the ordered active disk list
# inputs: target date, disks ordered by sequence, optional explicit override
# outputs: the assigned DiskSnapshot
# status: active


def days_since_reference(day: date, reference_date: date) -> int:
    """Return the 1-based day count since the anchor; earlier dates collapse to 1."""

    if day < reference_date:
        return 1
    return max((day - reference_date).days + 1, 1)


def resolve_disk(
    day: date,
    disks: Sequence[DiskSnapshot],
    *,
    reference_date: date,
    disk_id: UUID | None = None,
    disk_number: int | None = None,
) -> DiskSnapshot:
    """Pick the disk for ``day``, honouring an explicit id or sequence override."""

    if disk_id is not None:
        for disk in disks:
            if disk.id == disk_id:
                return disk
        raise UnknownOrInactiveDisk(f"disk {disk_id} does not exist or is inactive")

    if not disks:
        raise NoActiveDisksConfigured("no active disks configured for daily backups")

    if disk_number is not None:
        for disk in disks:
            if disk.sequence == disk_number:
                return disk
        raise UnknownOrInactiveDisk(f"no active disk configured with sequence {disk_number}")

    index = (days_since_reference(day, reference_date) - 1) % len(disks)
    return disks[index]
