"""Entry point for the `ci-mirrors` command."""
import argparse
import sys
from typing import Optional, Sequence

from ci_mirrors.cli import add_file, upload


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="ci-mirrors",
        description="Maintain the CI file mirror"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    upload_parser = subparsers.add_parser(
        "upload",
        help="Upload declared files missing from the mirror"
    )
    upload.add_arguments(upload_parser)
    upload_parser.set_defaults(func=upload.run)

    add_file_parser = subparsers.add_parser(
        "add-file",
        help="Hash a new source and add it to a manifest"
    )
    add_file.add_arguments(add_file_parser)
    add_file_parser.set_defaults(func=add_file.run)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
