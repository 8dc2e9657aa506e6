"""Decide which declared files still need to be uploaded."""
from collections import Counter
from typing import Iterable

from ci_mirrors.models.manifest import DeclaredFile, LegacyFile, ManifestEntry
from ci_mirrors.tools.errors import ValidationError
from ci_mirrors.tools.remote_index import RemoteIndex


def check_unique_names(entries: Iterable[ManifestEntry]) -> None:
    """Raise ValidationError if two entries claim the same object name."""
    counts = Counter(entry.name for entry in entries)
    duplicates = sorted(name for name, count in counts.items() if count > 1)
    if duplicates:
        raise ValidationError(
            "duplicate file names in manifest: " + ", ".join(duplicates)
        )


def plan(entries: Iterable[ManifestEntry], remote: RemoteIndex) -> list[DeclaredFile]:
    """
    Compute the ordered upload plan.

    Legacy entries and entries whose name is already in ``remote`` are
    dropped; the rest keep their input order. A name present remotely is
    never re-planned, even if its declared hash changed.

    Raises:
        ValidationError: on duplicate names, before anything else happens.
    """
    entries = list(entries)
    check_unique_names(entries)

    to_upload = []
    for entry in entries:
        if isinstance(entry, LegacyFile):
            continue
        if entry.name in remote:
            continue
        to_upload.append(entry)
    return to_upload
