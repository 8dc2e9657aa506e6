"""Snapshot of the object names present in the mirror when a run starts."""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ci_mirrors.models.manifest import SIDECAR_SUFFIX
from ci_mirrors.tools.storage import ObjectStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteIndex:
    """Immutable set of names published in the mirror.

    A name counts as published once both the object and its ``.sha256``
    sidecar exist. Objects found without a sidecar are kept apart in
    ``incomplete`` and are planned again so a later run can finish them;
    the uploader never rewrites the object itself.

    Taken once per run and used for planning only. Uploads made during the
    run are not folded back in; the uploader re-checks the live store itself.
    """
    names: frozenset[str] = frozenset()
    incomplete: frozenset[str] = frozenset()

    @classmethod
    def snapshot(cls, store: ObjectStore, candidates: Optional[Iterable[str]] = None) -> "RemoteIndex":
        """Read the current contents of ``store``.

        ``candidates`` limits the snapshot to the names a run may touch; stores
        that cannot enumerate objects probe these names (and their sidecars)
        one by one.

        Raises:
            StorageError: if the backend cannot be read.
        """
        if candidates is not None:
            candidates = list(candidates)
            probe = candidates + [name + SIDECAR_SUFFIX for name in candidates]
            found = store.list_existing_names(probe)
        else:
            found = store.list_existing_names()
            candidates = [name for name in found if not name.endswith(SIDECAR_SUFFIX)]

        objects = {name for name in candidates if name in found}
        names = frozenset(name for name in objects if name + SIDECAR_SUFFIX in found)
        incomplete = frozenset(objects - names)
        logger.info("remote index snapshot: %d published object(s)", len(names))
        if incomplete:
            logger.warning(
                "%d object(s) have no digest sidecar and will be completed: %s",
                len(incomplete), ", ".join(sorted(incomplete)),
            )
        return cls(names, incomplete)

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def __len__(self) -> int:
        return len(self.names)
