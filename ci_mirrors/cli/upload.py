"""CLI to sync manifest entries to the mirror (`ci-mirrors upload`)."""
import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from rich.markup import escape
from rich.table import Table
from tqdm import tqdm

from ci_mirrors import config
from ci_mirrors.cli.common import add_logging_arguments, configure_logging, console
from ci_mirrors.models.report import RunReport
from ci_mirrors.tools.errors import StorageError, ValidationError
from ci_mirrors.tools.manifest_io import load_entries
from ci_mirrors.tools.storage import CdnObjectStore, S3ObjectStore, public_url
from ci_mirrors.tools.sync import run_sync

logger = logging.getLogger(__name__)

_STATUS_STYLE = {
    "uploaded": "[green]uploaded[/green]",
    "present": "[cyan]already present[/cyan]",
    "verified": "[green]verified[/green]",
    "incomplete": "[yellow]sidecar missing[/yellow]",
    "failed": "[red]failed[/red]",
}


def add_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "manifests",
        nargs="*",
        type=Path,
        default=[Path(config.DEFAULT_MANIFEST_PATH)],
        help="Manifest files or directories of *.toml manifests (default: files/)"
    )
    parser.add_argument(
        "--skip-upload",
        action="store_true",
        help="Only fetch and verify new files; never write (no credentials required)"
    )
    parser.add_argument(
        "--cdn-url",
        default=config.CDN_URL,
        help="Base URL of the CDN where mirrored files are served"
    )
    parser.add_argument(
        "--s3-bucket",
        default=config.S3_BUCKET,
        help="Name of the S3 bucket containing the files"
    )
    parser.add_argument(
        "--report",
        type=Path,
        help="Write the run report as JSON to this path"
    )
    add_logging_arguments(parser)


def run(args: argparse.Namespace) -> int:
    configure_logging(args.verbose, args.debug)

    try:
        entries = load_entries(args.manifests)
    except ValidationError as e:
        console.print(f"[red]error:[/red] {escape(str(e))}")
        return 2
    logger.info("loaded %d manifest entries", len(entries))

    if args.skip_upload:
        store = CdnObjectStore(args.cdn_url)
    else:
        store = S3ObjectStore(args.s3_bucket)

    console.print("calculating the changes to execute...")
    progress = {}

    def plan_callback(to_upload):
        if to_upload:
            console.print(f"{len(to_upload)} file(s) to fetch and verify")
            progress["bar"] = tqdm(total=len(to_upload), desc="Mirroring", unit="file")

    def progress_callback(entry):
        bar = progress.get("bar")
        if bar is not None:
            bar.set_postfix_str(entry.name[-40:])
            bar.update(1)

    try:
        report = run_sync(
            entries,
            store,
            dry_run=args.skip_upload,
            progress_callback=progress_callback,
            plan_callback=plan_callback,
        )
    except (ValidationError, StorageError) as e:
        console.print(f"\n[red]error:[/red] {escape(str(e))}")
        return 2
    finally:
        if "bar" in progress:
            progress["bar"].close()

    _print_summary(report, args.cdn_url)

    if args.report:
        args.report.parent.mkdir(parents=True, exist_ok=True)
        args.report.write_text(report.model_dump_json(indent=2))
        console.print(f"Report: {args.report}")

    return report.exit_code


def _print_summary(report: RunReport, cdn_url: str) -> None:
    stats = report.stats

    if report.outcomes:
        table = Table(title="Mirror Sync Summary")
        table.add_column("Name", style="yellow")
        table.add_column("Status")
        table.add_column("Detail")
        for outcome in report.outcomes:
            if outcome.error:
                detail = escape(outcome.error)
            elif outcome.status == "uploaded":
                detail = public_url(cdn_url, outcome.name)
            else:
                detail = f"sha256 {outcome.sha256}"
            table.add_row(escape(outcome.name), _STATUS_STYLE[outcome.status], detail)
        console.print(table)

    console.print(
        f"Declared: {stats['total']}  Legacy: {stats['legacy']}  "
        f"Already mirrored: {stats['already_present']}  Planned: {stats['planned']}"
    )
    if report.incomplete_remote:
        console.print(f"{report.incomplete_remote} mirrored file(s) had no digest sidecar and were re-checked")

    mismatches = [o for o in report.failed if o.error_kind == "hash_mismatch"]
    if mismatches:
        console.print("\n[bold red]HASH MISMATCH[/bold red] (altered source or manifest typo):")
        for outcome in mismatches:
            console.print(f"  • {escape(outcome.name)}: {escape(outcome.error or '')}")

    if report.failed:
        console.print(f"\n[red]✗ {len(report.failed)} file(s) failed[/red]")
    if report.incomplete:
        console.print(
            f"\n[yellow]! {len(report.incomplete)} file(s) published without a digest sidecar;[/yellow] "
            "run again to complete them"
        )
    if not report.ok:
        return
    if not report.outcomes:
        console.print("\n[green]everything is up to date![/green]")
    elif report.dry_run:
        console.print("\n[green]✓ all new files verified[/green]; skipping upload due to --skip-upload")
    else:
        console.print(f"\n[green]✓ {stats['uploaded']} file(s) uploaded[/green]")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Upload files declared in the manifests that are missing from the mirror"
    )
    add_arguments(parser)
    args = parser.parse_args(argv)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
