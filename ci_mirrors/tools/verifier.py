"""Compare downloaded digests against declared ones."""
from ci_mirrors.tools.errors import HashMismatch


def normalize_digest(digest: str) -> str:
    return digest.strip().lower()


def verify(computed: str, expected: str) -> None:
    """Raise HashMismatch unless both hex digests are equal, ignoring case."""
    actual = normalize_digest(computed)
    wanted = normalize_digest(expected)
    if actual != wanted:
        raise HashMismatch(expected=wanted, actual=actual)
