"""CLI to declare a new mirrored file (`ci-mirrors add-file`)."""
import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from rich.markup import escape

from ci_mirrors import config
from ci_mirrors.cli.common import add_logging_arguments, configure_logging, console
from ci_mirrors.tools.authoring import add_file_to_manifest
from ci_mirrors.tools.errors import FetchError, ValidationError
from ci_mirrors.tools.manifest_io import render_entry
from ci_mirrors.tools.storage import public_url


def add_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "source",
        help="URL of the file to mirror"
    )
    parser.add_argument(
        "--path",
        dest="name",
        required=True,
        help="Name of the file in the mirror, e.g. org/repo/artifact-1.0.tar.gz"
    )
    parser.add_argument(
        "--toml-files",
        dest="toml_file",
        type=Path,
        required=True,
        help="Manifest file to append the entry to (created if missing)"
    )
    parser.add_argument(
        "--license",
        help="License of the file (freeform, e.g. an SPDX expression)"
    )
    add_logging_arguments(parser)


def run(args: argparse.Namespace) -> int:
    configure_logging(args.verbose, args.debug)

    console.print(f"downloading {escape(args.source)}...")
    try:
        entry = add_file_to_manifest(
            toml_path=args.toml_file,
            source_url=args.source,
            name=args.name,
            license=args.license,
        )
    except ValidationError as e:
        console.print(f"[red]error:[/red] {escape(str(e))}")
        return 2
    except FetchError as e:
        console.print(f"[red]error:[/red] {escape(str(e))}")
        return 1

    console.print(f"\n✓ [green]Added to {escape(str(args.toml_file))}:[/green]\n")
    console.print(escape(render_entry(entry)))
    console.print(f"Will be published at {public_url(config.CDN_URL, entry.name)}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Download a file, hash it and add it to a manifest"
    )
    add_arguments(parser)
    args = parser.parse_args(argv)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
