"""Shared CLI plumbing: logging flags and console."""
import argparse
import logging
import sys

from rich.console import Console


console = Console()


def add_logging_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging (downloads, uploads, planning)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (HTTP and S3 details, very verbose)"
    )


def configure_logging(verbose: bool = False, debug: bool = False) -> None:
    if debug:
        log_level = logging.DEBUG
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    elif verbose:
        log_level = logging.INFO
        log_format = "%(asctime)s - %(levelname)s - %(message)s"
    else:
        log_level = logging.WARNING
        log_format = "%(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    if not debug:
        # boto and httpx are chatty at INFO
        for name in ("botocore", "boto3", "httpx", "httpcore"):
            logging.getLogger(name).setLevel(logging.WARNING)
