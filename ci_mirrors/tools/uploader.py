"""Create-if-absent writes of verified files to the mirror."""
import enum
import logging
from pathlib import Path

from ci_mirrors.models.manifest import SIDECAR_SUFFIX
from ci_mirrors.tools.errors import SidecarError, StorageError, UploadError
from ci_mirrors.tools.storage import ObjectStore

logger = logging.getLogger(__name__)


class UploadResult(str, enum.Enum):
    UPLOADED = "uploaded"
    PRESENT = "present"  # object already there; at most the sidecar written
    SKIPPED = "skipped"  # dry run


class Uploader:
    """Writes verified files without ever replacing an existing object."""

    def __init__(self, store: ObjectStore, dry_run: bool = False):
        if store.read_only and not dry_run:
            raise StorageError("the configured store is read-only; only dry runs can use it")
        self.store = store
        self.dry_run = dry_run

    def upload(self, name: str, path: Path, sha256: str) -> UploadResult:
        """
        Publish the file at ``path`` under ``name``, then its digest sidecar.

        The existence check runs right before the write, against the live
        store rather than the run's snapshot, and the write itself is
        conditional, so concurrent runs cannot overwrite each other. The
        sidecar is written create-if-absent whether or not the object was
        ours, which completes objects left without one by an earlier run.

        Raises:
            UploadError: if the backend rejects or fails the object write.
            SidecarError: if the object is in place but the sidecar write fails.
        """
        if self.dry_run:
            logger.info("dry run: not uploading %s", name)
            return UploadResult.SKIPPED

        try:
            if self.store.object_exists(name):
                logger.info("%s already exists, not rewriting it", name)
                created = False
            else:
                logger.info("uploading %s", name)
                with path.open("rb") as body:
                    created = self.store.put_object(name, body)
        except StorageError as exc:
            raise UploadError(name, str(exc)) from exc
        except OSError as exc:
            raise UploadError(name, f"cannot read downloaded file: {exc}") from exc

        self._write_sidecar(name, sha256)
        return UploadResult.UPLOADED if created else UploadResult.PRESENT

    def _write_sidecar(self, name: str, sha256: str) -> None:
        sidecar = name + SIDECAR_SUFFIX
        try:
            if self.store.put_object(sidecar, sha256.encode("ascii")):
                logger.debug("wrote %s", sidecar)
        except StorageError as exc:
            raise SidecarError(name, str(exc)) from exc
