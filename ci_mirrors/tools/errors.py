"""Error types raised by the mirror sync and authoring tools."""


class MirrorError(Exception):
    """Base class for every error raised by ci_mirrors."""


class ValidationError(MirrorError):
    """The declared manifest set is malformed (aborts the whole run)."""


class FetchError(MirrorError):
    """Downloading a source failed."""

    kind = "fetch"

    def __init__(self, url: str, message: str):
        super().__init__(f"failed to fetch {url}: {message}")
        self.url = url


class DownloadWriteError(FetchError):
    """The downloaded bytes could not be written to local disk."""

    kind = "local_io"


class FetchNetworkError(FetchError):
    kind = "network"


class FetchHttpStatusError(FetchError):
    kind = "http_status"

    def __init__(self, url: str, status_code: int):
        super().__init__(url, f"server responded with HTTP {status_code}")
        self.status_code = status_code


class TooManyRedirects(FetchError):
    kind = "too_many_redirects"

    def __init__(self, url: str, limit: int):
        super().__init__(url, f"more than {limit} redirects")
        self.limit = limit


class HashMismatch(MirrorError):
    """Downloaded content does not match the declared sha256."""

    kind = "hash_mismatch"

    def __init__(self, expected: str, actual: str):
        super().__init__(f"sha256 mismatch (expected {expected}, downloaded {actual})")
        self.expected = expected
        self.actual = actual


class StorageError(MirrorError):
    """The object storage backend failed or refused a request."""

    kind = "storage"


class UploadError(MirrorError):
    """Writing a verified file to the mirror failed."""

    kind = "upload"

    def __init__(self, name: str, message: str):
        super().__init__(f"failed to upload {name}: {message}")
        self.name = name


class SidecarError(MirrorError):
    """The object is published but its digest sidecar could not be written."""

    kind = "sidecar"

    def __init__(self, name: str, message: str):
        super().__init__(f"{name} is published but its digest sidecar is missing: {message}")
        self.name = name
