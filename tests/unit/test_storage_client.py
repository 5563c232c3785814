"""Tests for the S3StorageClient async wrapper and S3ClientProvider.

The boto3 client is a MagicMock; these tests pin the exact S3 API calls and
parameter names we send, and how SDK errors surface as StorageError.
"""
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from bucketsync.storage.client import (
    CredentialsError,
    ObjectSummary,
    S3ClientProvider,
    S3StorageClient,
    StorageCredentials,
    StorageError,
    normalize_region,
)


def _client_error(code="AccessDenied", message="Access Denied", op="PutObject"):
    return ClientError({"Error": {"Code": code, "Message": message}}, op)


@pytest.fixture
def s3():
    return MagicMock()


@pytest.fixture
def client(s3):
    return S3StorageClient(s3)


# ─── normalize_region ─────────────────────────────────────────────────────────

class TestNormalizeRegion:
    def test_plain_code_unchanged(self):
        assert normalize_region("eu-west-1") == "eu-west-1"

    def test_display_label(self):
        assert normalize_region("US East (us-east-1)") == "us-east-1"

    def test_localized_label(self):
        assert normalize_region("亞太地區 (ap-northeast-1)") == "ap-northeast-1"

    def test_empty_defaults_to_us_east_1(self):
        assert normalize_region("") == "us-east-1"


# ─── Buckets ──────────────────────────────────────────────────────────────────

class TestBuckets:
    @pytest.mark.asyncio
    async def test_list_buckets(self, client, s3):
        s3.list_buckets.return_value = {"Buckets": [{"Name": "one"}, {"Name": "two"}]}
        assert await client.list_buckets() == ["one", "two"]

    @pytest.mark.asyncio
    async def test_create_bucket_us_east_1_has_no_location(self, client, s3):
        await client.create_bucket("new-bucket", "us-east-1")
        s3.create_bucket.assert_called_once_with(Bucket="new-bucket")

    @pytest.mark.asyncio
    async def test_create_bucket_other_region(self, client, s3):
        await client.create_bucket("new-bucket", "EU (Ireland) (eu-west-1)")
        s3.create_bucket.assert_called_once_with(
            Bucket="new-bucket",
            CreateBucketConfiguration={"LocationConstraint": "eu-west-1"},
        )

    @pytest.mark.asyncio
    async def test_delete_bucket(self, client, s3):
        await client.delete_bucket("old")
        s3.delete_bucket.assert_called_once_with(Bucket="old")

    @pytest.mark.asyncio
    async def test_bucket_region_empty_means_us_east_1(self, client, s3):
        s3.get_bucket_location.return_value = {"LocationConstraint": None}
        assert await client.get_bucket_region("b") == "us-east-1"

    @pytest.mark.asyncio
    async def test_bucket_region(self, client, s3):
        s3.get_bucket_location.return_value = {"LocationConstraint": "ap-northeast-1"}
        assert await client.get_bucket_region("b") == "ap-northeast-1"


# ─── Objects ──────────────────────────────────────────────────────────────────

class TestObjects:
    @pytest.mark.asyncio
    async def test_put_object_with_content_type(self, client, s3):
        await client.put_object("b", "k/a.txt", b"data", "text/plain")
        s3.put_object.assert_called_once_with(
            Bucket="b", Key="k/a.txt", Body=b"data", ContentType="text/plain"
        )

    @pytest.mark.asyncio
    async def test_put_object_without_content_type(self, client, s3):
        await client.put_object("b", "k", b"data")
        s3.put_object.assert_called_once_with(Bucket="b", Key="k", Body=b"data")

    @pytest.mark.asyncio
    async def test_client_error_becomes_storage_error(self, client, s3):
        s3.put_object.side_effect = _client_error()
        with pytest.raises(StorageError, match="AccessDenied: Access Denied"):
            await client.put_object("b", "k", b"data")

    @pytest.mark.asyncio
    async def test_botocore_error_becomes_storage_error(self, client, s3):
        s3.put_object.side_effect = EndpointConnectionError(endpoint_url="https://s3.example")
        with pytest.raises(StorageError, match="s3.example"):
            await client.put_object("b", "k", b"data")

    @pytest.mark.asyncio
    async def test_get_object(self, client, s3):
        body = MagicMock()
        body.read.return_value = b"contents"
        s3.get_object.return_value = {"Body": body}
        assert await client.get_object("b", "k") == b"contents"
        s3.get_object.assert_called_once_with(Bucket="b", Key="k")

    @pytest.mark.asyncio
    async def test_list_objects_splits_folders_and_files(self, client, s3):
        modified = datetime(2026, 1, 1, 12, 0)
        s3.get_paginator.return_value.paginate.return_value = [
            {
                "CommonPrefixes": [{"Prefix": "photos/2025/"}],
                "Contents": [
                    {"Key": "photos/", "Size": 0},
                    {"Key": "photos/a.jpg", "Size": 10, "LastModified": modified,
                     "StorageClass": "STANDARD"},
                ],
            },
            {"Contents": [{"Key": "photos/empty-dir/", "Size": 0}]},
        ]

        listing = await client.list_objects("b", "photos/")

        s3.get_paginator.assert_called_once_with("list_objects_v2")
        s3.get_paginator.return_value.paginate.assert_called_once_with(
            Bucket="b", Prefix="photos/", Delimiter="/"
        )
        assert listing.folders == ["photos/2025/", "photos/empty-dir/"]
        assert listing.files == [
            ObjectSummary(key="photos/a.jpg", size=10, last_modified=modified,
                          storage_class="STANDARD")
        ]

    @pytest.mark.asyncio
    async def test_delete_objects_in_batches(self, client, s3):
        s3.delete_objects.return_value = {"Deleted": []}
        keys = [f"k{i}" for i in range(1500)]

        await client.delete_objects("b", keys)

        assert s3.delete_objects.call_count == 2
        first = s3.delete_objects.call_args_list[0].kwargs
        second = s3.delete_objects.call_args_list[1].kwargs
        assert len(first["Delete"]["Objects"]) == 1000
        assert len(second["Delete"]["Objects"]) == 500
        assert first["Delete"]["Objects"][0] == {"Key": "k0"}

    @pytest.mark.asyncio
    async def test_delete_objects_reports_per_key_errors(self, client, s3):
        s3.delete_objects.return_value = {
            "Errors": [{"Key": "locked.txt", "Code": "AccessDenied", "Message": "Access Denied"}]
        }
        with pytest.raises(StorageError, match="locked.txt: Access Denied"):
            await client.delete_objects("b", ["locked.txt", "fine.txt"])


# ─── S3ClientProvider ─────────────────────────────────────────────────────────

class TestS3ClientProvider:
    def test_missing_credentials_raise(self):
        with pytest.raises(CredentialsError):
            S3ClientProvider()()

    def test_empty_secret_raises(self):
        provider = S3ClientProvider(StorageCredentials(access_key="AKIA", secret_key=""))
        with pytest.raises(CredentialsError):
            provider()

    def test_credentials_error_is_storage_error(self):
        assert issubclass(CredentialsError, StorageError)

    def test_builds_client_from_credentials(self):
        creds = StorageCredentials(
            access_key="AKIA", secret_key="shh", region="Asia (ap-east-1)",
            endpoint_url="http://localhost:9000",
        )
        with patch("bucketsync.storage.client.boto3.session.Session") as session_cls:
            client = S3ClientProvider(creds)()

        session_cls.assert_called_once_with(
            aws_access_key_id="AKIA",
            aws_secret_access_key="shh",
            region_name="ap-east-1",
        )
        session_cls.return_value.client.assert_called_once_with(
            "s3", endpoint_url="http://localhost:9000"
        )
        assert isinstance(client, S3StorageClient)

    def test_update_replaces_credentials(self):
        provider = S3ClientProvider()
        creds = StorageCredentials(access_key="a", secret_key="b", region="eu-west-1")
        provider.update(creds)
        assert provider.credentials == creds
