"""
Recording location value type and its per-start computation.

The backend runs on its own host, so directory joins follow the path
flavour of the configured base directory, not the local OS.
"""

from __future__ import annotations

import ntpath
import posixpath
import re
from dataclasses import dataclass
from typing import ClassVar

from spec import NO_TERRITORY_ID, ZONE_SUFFIX_SEPARATOR


_WINDOWS_DRIVE = re.compile(r"^[A-Za-z]:")


@dataclass(frozen=True)
class RecordingLocation:
    """
    Backend recording folder + filename pattern.

    Empty strings mean "leave the backend's value alone".
    """

    directory: str = ""
    filename_format: str = ""

    EMPTY: ClassVar[RecordingLocation]

    @property
    def is_empty(self) -> bool:
        return not self.directory.strip() and not self.filename_format.strip()


RecordingLocation.EMPTY = RecordingLocation()


def _is_windows_path(path: str) -> bool:
    return "\\" in path or bool(_WINDOWS_DRIVE.match(path))


def join_backend_path(base: str, name: str) -> str:
    """Join name under base using base's own separator style."""
    if _is_windows_path(base):
        return ntpath.join(base, name)
    return posixpath.join(base, name)


def compute_recording_location(
    *,
    territory_id: int | None,
    zone_name: str | None,
    base_directory: str,
    base_filename_format: str,
    include_territory: bool,
    zone_as_suffix: bool,
) -> RecordingLocation:
    """
    Build the location for the next recording.

    - Not in a zone: EMPTY (no override).
    - Zone unknown or blank: base values unchanged.
    - Otherwise the zone is appended as "_<zone>" to a non-empty filename
      format (zone_as_suffix) and as a sub-directory of a non-empty base
      directory (include_territory).

    Pure; call it right before every start so zone changes between
    encounters are picked up.
    """
    if territory_id is None or territory_id == NO_TERRITORY_ID:
        return RecordingLocation.EMPTY

    directory = base_directory
    filename_format = base_filename_format

    zone = (zone_name or "").strip()
    if zone:
        if zone_as_suffix and filename_format.strip():
            filename_format = f"{filename_format}{ZONE_SUFFIX_SEPARATOR}{zone}"
        if include_territory and directory.strip():
            directory = join_backend_path(directory, zone)

    return RecordingLocation(directory=directory, filename_format=filename_format)
