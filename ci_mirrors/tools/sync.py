"""Reconcile declared files with the mirror and upload what is missing."""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from ci_mirrors.models.manifest import DeclaredFile, LegacyFile, ManifestEntry
from ci_mirrors.models.report import EntryOutcome, RunReport
from ci_mirrors.tools.errors import FetchError, HashMismatch, SidecarError, UploadError
from ci_mirrors.tools.fetcher import Downloader, Fetcher
from ci_mirrors.tools.reconciler import check_unique_names, plan
from ci_mirrors.tools.remote_index import RemoteIndex
from ci_mirrors.tools.storage import ObjectStore
from ci_mirrors.tools.uploader import UploadResult, Uploader
from ci_mirrors.tools.verifier import verify

logger = logging.getLogger(__name__)

_STATUS_BY_RESULT = {
    UploadResult.UPLOADED: "uploaded",
    UploadResult.PRESENT: "present",
    UploadResult.SKIPPED: "verified",
}


def run_sync(
    entries: Sequence[ManifestEntry],
    store: ObjectStore,
    dry_run: bool = False,
    fetcher: Optional[Fetcher] = None,
    progress_callback: Optional[Callable[[DeclaredFile], None]] = None,
    plan_callback: Optional[Callable[[list[DeclaredFile]], None]] = None,
) -> RunReport:
    """
    Fetch, verify and upload every declared file missing from the mirror.

    Each planned entry is processed on its own: a fetch failure, hash
    mismatch or upload error is recorded on that entry and the run moves on.
    Malformed manifests and an unreadable store abort before any download.

    Args:
        entries: Every declared entry, legacy ones included
        store: Backend to snapshot and write to
        dry_run: Fetch and verify only; never write
        fetcher: Optional Fetcher (a default one is created otherwise)
        progress_callback: Optional callback(entry) called after each entry
        plan_callback: Optional callback(plan) called once the plan is known

    Returns:
        RunReport with one outcome per planned entry

    Raises:
        ValidationError: duplicate names in ``entries``
        StorageError: the store could not be read for the snapshot, or is
            read-only and ``dry_run`` is not set
    """
    entries = list(entries)
    report = RunReport(
        started_at=datetime.now(timezone.utc).isoformat(),
        dry_run=dry_run,
        total_entries=len(entries),
        legacy_entries=sum(1 for e in entries if isinstance(e, LegacyFile)),
    )

    # Validate before touching the network.
    check_unique_names(entries)
    uploader = Uploader(store, dry_run=dry_run)

    candidates = [e.name for e in entries if isinstance(e, DeclaredFile)]
    remote = RemoteIndex.snapshot(store, candidates)
    to_upload = plan(entries, remote)
    report.already_present = len(remote)
    report.incomplete_remote = len(remote.incomplete)
    logger.info(
        "%d entries declared, %d legacy, %d already mirrored, %d to upload",
        report.total_entries, report.legacy_entries, report.already_present, len(to_upload),
    )
    if plan_callback:
        plan_callback(to_upload)

    with Downloader(fetcher) as downloader:
        for entry in to_upload:
            outcome = _process_entry(entry, downloader, uploader)
            report.outcomes.append(outcome)
            if progress_callback:
                progress_callback(entry)

    report.finished_at = datetime.now(timezone.utc).isoformat()
    return report


def _process_entry(entry: DeclaredFile, downloader: Downloader, uploader: Uploader) -> EntryOutcome:
    outcome = EntryOutcome(name=entry.name, status="failed", source=entry.source)

    try:
        fetched = downloader.download(entry.source)
    except FetchError as exc:
        logger.error("%s: %s", entry.name, exc)
        outcome.error_kind = exc.kind
        outcome.error = str(exc)
        return outcome

    outcome.sha256 = fetched.sha256
    outcome.size_bytes = fetched.size_bytes
    try:
        verify(fetched.sha256, entry.sha256)
        result = uploader.upload(entry.name, fetched.path, fetched.sha256)
    except HashMismatch as exc:
        logger.error("%s: %s from %s", entry.name, exc, entry.source)
        outcome.error_kind = exc.kind
        outcome.error = str(exc)
        return outcome
    except SidecarError as exc:
        logger.warning("%s", exc)
        outcome.status = "incomplete"
        outcome.error_kind = exc.kind
        outcome.error = str(exc)
        return outcome
    except UploadError as exc:
        logger.error("%s", exc)
        outcome.error_kind = exc.kind
        outcome.error = str(exc)
        return outcome
    finally:
        fetched.path.unlink(missing_ok=True)

    outcome.status = _STATUS_BY_RESULT[result]
    return outcome
