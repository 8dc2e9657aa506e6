"""Tests for ci_mirrors.tools.storage (S3 via botocore Stubber, CDN via MockTransport)."""
import boto3
import httpx
import pytest
from botocore.stub import ANY, Stubber

from ci_mirrors.tools.errors import StorageError
from ci_mirrors.tools.storage import CdnObjectStore, S3ObjectStore, public_url

BUCKET = "mirror-bucket"


@pytest.fixture
def s3_client():
    client = boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


def test_s3_lists_all_pages(s3_client) -> None:
    client, stubber = s3_client
    stubber.add_response(
        "list_objects_v2",
        {"Contents": [{"Key": "a"}, {"Key": "b/c"}], "IsTruncated": True, "NextContinuationToken": "next"},
        {"Bucket": BUCKET},
    )
    stubber.add_response(
        "list_objects_v2",
        {"Contents": [{"Key": "d"}], "IsTruncated": False},
        {"Bucket": BUCKET, "ContinuationToken": "next"},
    )
    store = S3ObjectStore(BUCKET, client=client)
    assert store.list_existing_names() == {"a", "b/c", "d"}


def test_s3_listing_filters_candidates(s3_client) -> None:
    client, stubber = s3_client
    stubber.add_response(
        "list_objects_v2",
        {"Contents": [{"Key": "a"}, {"Key": "b"}], "IsTruncated": False},
        {"Bucket": BUCKET},
    )
    store = S3ObjectStore(BUCKET, client=client)
    assert store.list_existing_names(["b", "z"]) == {"b"}


def test_s3_empty_bucket(s3_client) -> None:
    client, stubber = s3_client
    stubber.add_response("list_objects_v2", {"IsTruncated": False}, {"Bucket": BUCKET})
    assert S3ObjectStore(BUCKET, client=client).list_existing_names() == set()


def test_s3_listing_failure_is_storage_error(s3_client) -> None:
    client, stubber = s3_client
    stubber.add_client_error("list_objects_v2", service_error_code="AccessDenied", http_status_code=403)
    with pytest.raises(StorageError, match="failed to list"):
        S3ObjectStore(BUCKET, client=client).list_existing_names()


def test_s3_object_exists(s3_client) -> None:
    client, stubber = s3_client
    stubber.add_response("head_object", {"ContentLength": 3}, {"Bucket": BUCKET, "Key": "a"})
    stubber.add_client_error(
        "head_object", service_error_code="404", http_status_code=404,
        expected_params={"Bucket": BUCKET, "Key": "missing"},
    )
    store = S3ObjectStore(BUCKET, client=client)
    assert store.object_exists("a") is True
    assert store.object_exists("missing") is False


def test_s3_head_failure_is_storage_error(s3_client) -> None:
    client, stubber = s3_client
    stubber.add_client_error("head_object", service_error_code="500", http_status_code=500)
    with pytest.raises(StorageError):
        S3ObjectStore(BUCKET, client=client).object_exists("a")


def test_s3_put_is_conditional(s3_client) -> None:
    client, stubber = s3_client
    stubber.add_response(
        "put_object",
        {},
        {
            "Bucket": BUCKET,
            "Key": "a",
            "Body": ANY,
            "ContentType": "application/octet-stream",
            "IfNoneMatch": "*",
        },
    )
    assert S3ObjectStore(BUCKET, client=client).put_object("a", b"data") is True


def test_s3_put_precondition_failed_means_present(s3_client) -> None:
    client, stubber = s3_client
    stubber.add_client_error("put_object", service_error_code="PreconditionFailed", http_status_code=412)
    assert S3ObjectStore(BUCKET, client=client).put_object("a", b"data") is False


def test_s3_put_failure_is_storage_error(s3_client) -> None:
    client, stubber = s3_client
    stubber.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
    with pytest.raises(StorageError, match="failed to write"):
        S3ObjectStore(BUCKET, client=client).put_object("a", b"data")


def _cdn(statuses: dict, seen: list = None, redirects: dict = None) -> CdnObjectStore:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append((request.method, str(request.url)))
        if redirects and str(request.url) in redirects:
            return httpx.Response(301, headers={"Location": redirects[str(request.url)]})
        return httpx.Response(statuses.get(str(request.url), 404))

    return CdnObjectStore("https://mirror.test/", transport=httpx.MockTransport(handler))


def test_cdn_object_exists() -> None:
    seen = []
    store = _cdn({"https://mirror.test/a/b.tar.gz": 200, "https://mirror.test/forbidden": 403}, seen)
    assert store.object_exists("a/b.tar.gz") is True
    assert store.object_exists("forbidden") is False
    assert store.object_exists("missing") is False
    assert all(method == "HEAD" for method, _ in seen)


def test_cdn_follows_redirects() -> None:
    seen = []
    store = _cdn(
        {"https://edge.mirror.test/a": 200},
        seen,
        redirects={"https://mirror.test/a": "https://edge.mirror.test/a", "https://mirror.test/b": "https://edge.mirror.test/b"},
    )
    assert store.object_exists("a") is True
    assert store.object_exists("b") is False
    assert ("HEAD", "https://edge.mirror.test/a") in seen


def test_cdn_unexpected_status_is_storage_error() -> None:
    store = _cdn({"https://mirror.test/a": 500})
    with pytest.raises(StorageError, match="500"):
        store.object_exists("a")


def test_cdn_probes_candidates() -> None:
    store = _cdn({"https://mirror.test/a": 200})
    assert store.list_existing_names(["a", "b"]) == {"a"}
    with pytest.raises(StorageError):
        store.list_existing_names()


def test_cdn_is_read_only() -> None:
    store = _cdn({})
    assert store.read_only
    with pytest.raises(StorageError, match="read-only"):
        store.put_object("a", b"data")


def test_public_url_quotes_name() -> None:
    assert public_url("https://mirror.test/", "org/pkg+1.0.tar.gz") == "https://mirror.test/org/pkg%2B1.0.tar.gz"
