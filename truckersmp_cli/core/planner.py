"""
Builds the working set of files to reconcile for one sync run.
"""

import logging

from truckersmp_cli.models.config import SyncProfile
from truckersmp_cli.models.manifest import Manifest, ManifestEntry

log = logging.getLogger(__name__)

WorkingSet = tuple[ManifestEntry, ...]


def plan(manifest: Manifest, profile: SyncProfile) -> WorkingSet:
    """
    Selects the shared files plus the files of the chosen game.

    Shared entries come first, each bucket keeps manifest order, and a path
    listed more than once is kept only at its first occurrence.
    """
    seen: set[str] = set()
    working_set: list[ManifestEntry] = []

    for entry in (*manifest.shared, *manifest.bucket(profile.category)):
        if entry.relative_path in seen:
            log.debug(
                f"Dropping duplicate manifest entry '{entry.relative_path}' "
                f"({entry.category.value})."
            )
            continue
        seen.add(entry.relative_path)
        working_set.append(entry)

    return tuple(working_set)
