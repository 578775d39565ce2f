import io
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from botocore.exceptions import ClientError

from s3desk.errors import OperationAbortedError, ProfileCredentialsError, ProfileNotFoundError
from s3desk.models import UploadItem
from s3desk.profiles import resolve_profiles
from s3desk.services import S3DirectoryService
from s3desk.settings import EndpointOverride


def client_error(code, operation, message="Denied"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeS3Client:
    def __init__(
        self,
        buckets=None,
        object_responses=None,
        head_object_responses=None,
        get_object_responses=None,
        tagging_responses=None,
        delete_errors=None,
        copy_errors=None,
        download_errors=None,
        upload_errors=None,
        transfer_sequences=None,
    ):
        self.buckets = buckets or []
        self.object_responses = {name: iter(responses) for name, responses in (object_responses or {}).items()}
        self.head_object_responses = head_object_responses or {}
        self.get_object_responses = get_object_responses or {}
        self.tagging_responses = tagging_responses or {}
        self.delete_object_errors = delete_errors or {}
        self.copy_object_errors = copy_errors or {}
        self.download_file_errors = download_errors or {}
        self.upload_file_errors = upload_errors or {}
        self.transfer_sequences = transfer_sequences or {}
        self.list_objects_kwargs = []
        self.delete_object_calls = []
        self.copy_object_calls = []
        self.put_object_calls = []
        self.download_file_calls = []
        self.upload_file_calls = []

    def list_buckets(self):
        return {"Buckets": [{"Name": name, "CreationDate": datetime(2024, 1, 1)} for name in self.buckets]}

    def list_objects_v2(self, **kwargs):
        self.list_objects_kwargs.append(kwargs)
        response = next(self.object_responses[kwargs["Bucket"]])
        if isinstance(response, Exception):
            raise response
        return response

    def head_object(self, **kwargs):
        response = self.head_object_responses.get((kwargs["Bucket"], kwargs["Key"]), {})
        if isinstance(response, Exception):
            raise response
        return response

    def get_object(self, **kwargs):
        data = self.get_object_responses[(kwargs["Bucket"], kwargs["Key"])]
        if isinstance(data, Exception):
            raise data
        return {"Body": io.BytesIO(data)}

    def get_object_tagging(self, **kwargs):
        response = self.tagging_responses.get((kwargs["Bucket"], kwargs["Key"]), {"TagSet": []})
        if isinstance(response, Exception):
            raise response
        return response

    def put_object(self, **kwargs):
        self.put_object_calls.append(kwargs)

    def delete_object(self, **kwargs):
        bucket = kwargs["Bucket"]
        key = kwargs["Key"]
        self.delete_object_calls.append((bucket, key))
        error = self.delete_object_errors.get((bucket, key))
        if isinstance(error, Exception):
            raise error

    def copy_object(self, **kwargs):
        self.copy_object_calls.append(kwargs)
        error = self.copy_object_errors.get((kwargs["Bucket"], kwargs["Key"]))
        if isinstance(error, Exception):
            raise error

    def download_file(self, bucket, key, filename, Callback=None):
        self.download_file_calls.append((bucket, key, filename))
        Path(filename).write_bytes(b"partial")
        if Callback:
            for amount in self.transfer_sequences.get(("download", bucket, key), []):
                Callback(amount)
        error = self.download_file_errors.get((bucket, key))
        if isinstance(error, Exception):
            raise error

    def upload_file(self, filename, bucket, key, Callback=None, ExtraArgs=None):
        self.upload_file_calls.append((filename, bucket, key, ExtraArgs))
        error = self.upload_file_errors.get((bucket, key))
        if isinstance(error, Exception):
            raise error
        if Callback:
            for amount in self.transfer_sequences.get(("upload", bucket, key), []):
                Callback(amount)


class StubResolver:
    def __init__(self, credentials=None, config=None):
        self.credentials = credentials if credentials is not None else {
            "default": {"aws_access_key_id": "AKIA1", "aws_secret_access_key": "secret"},
            "other": {"aws_access_key_id": "AKIA2", "aws_secret_access_key": "secret2"},
        }
        self.config = config if config is not None else {"default": {"region": "eu-west-1"}}
        self.credentials_path = None
        self.config_path = None

    def load(self):
        return resolve_profiles(self.credentials, self.config)

    def get(self, name):
        return self.load().get(name)


class RecordingFactory:
    def __init__(self, client):
        self.client = client
        self.calls = []

    def __call__(self, service_name, **kwargs):
        self.calls.append((service_name, kwargs))
        return self.client


def make_service(fake_client, resolver=None, endpoint_override=None):
    factory = RecordingFactory(fake_client)
    service = S3DirectoryService(
        client_factory=factory,
        resolver=resolver or StubResolver(),
        endpoint_override=endpoint_override,
    )
    return service, factory


class CancelAfter:
    """Reports cancellation once it has been polled ``count`` times."""

    def __init__(self, count):
        self.remaining = count

    def __call__(self):
        if self.remaining <= 0:
            return True
        self.remaining -= 1
        return False


class ConnectionTests(unittest.TestCase):
    def test_reuses_connection_for_same_profile(self):
        fake_client = FakeS3Client(buckets=["b"])
        service, factory = make_service(fake_client)

        service.list_buckets(profile_name="default")
        service.list_buckets(profile_name="default")

        self.assertEqual(1, len(factory.calls))
        self.assertEqual("default", service.current_profile_name)

    def test_switching_profile_or_forcing_builds_new_connection(self):
        service, factory = make_service(FakeS3Client())

        service.get_connection("default")
        service.get_connection("other")
        service.get_connection("other", force_new=True)

        self.assertEqual(3, len(factory.calls))
        self.assertEqual("other", service.current_profile_name)

    def test_clear_connection_drops_handle(self):
        service, factory = make_service(FakeS3Client())
        service.get_connection("default")

        service.clear_connection()

        self.assertIsNone(service.current_profile_name)
        service.get_connection("default")
        self.assertEqual(2, len(factory.calls))

    def test_static_profile_uses_its_keys_and_region(self):
        service, factory = make_service(FakeS3Client())

        handle = service.get_connection("default")

        _, kwargs = factory.calls[0]
        self.assertEqual("AKIA1", kwargs["aws_access_key_id"])
        self.assertEqual("secret", kwargs["aws_secret_access_key"])
        self.assertEqual("eu-west-1", kwargs["region_name"])
        self.assertNotIn("endpoint_url", kwargs)
        self.assertEqual("eu-west-1", handle.region)

    def test_profile_without_region_uses_default_region(self):
        service, factory = make_service(FakeS3Client())

        service.get_connection("other")

        self.assertEqual("eu-west-1", factory.calls[0][1]["region_name"])

    def test_falls_back_to_us_east_1(self):
        resolver = StubResolver(config={})
        service, factory = make_service(FakeS3Client(), resolver=resolver)

        service.get_connection("default")

        self.assertEqual("us-east-1", factory.calls[0][1]["region_name"])

    def test_role_profile_delegates_to_named_profile(self):
        resolver = StubResolver(
            credentials={"base": {"aws_access_key_id": "AKIA1", "aws_secret_access_key": "s"}},
            config={"dev": {"role_arn": "arn:role", "source_profile": "base", "region": "us-west-2"}},
        )
        service, factory = make_service(FakeS3Client(), resolver=resolver)

        service.get_connection("dev")

        _, kwargs = factory.calls[0]
        self.assertEqual("dev", kwargs["profile_name"])
        self.assertEqual("us-west-2", kwargs["region_name"])
        self.assertNotIn("aws_access_key_id", kwargs)

    def test_unknown_profile_fails_without_building_client(self):
        service, factory = make_service(FakeS3Client())

        with self.assertRaises(ProfileNotFoundError):
            service.get_connection("ghost")

        self.assertEqual([], factory.calls)

    def test_profile_without_credentials_fails(self):
        resolver = StubResolver(credentials={}, config={"plain": {"region": "us-east-1"}})
        service, factory = make_service(FakeS3Client(), resolver=resolver)

        with self.assertRaises(ProfileCredentialsError) as ctx:
            service.get_connection("plain")

        self.assertEqual("Profile has no credentials configured", ctx.exception.reason)
        self.assertEqual(
            "Profile 'plain' has no valid credentials: Profile has no credentials configured",
            str(ctx.exception),
        )
        self.assertEqual([], factory.calls)

    def test_endpoint_override_with_keys_bypasses_profiles(self):
        override = EndpointOverride(
            endpoint_url="http://localhost:4566",
            access_key_id="test",
            secret_access_key="test",
        )
        service, factory = make_service(
            FakeS3Client(), resolver=StubResolver(credentials={}, config={}), endpoint_override=override
        )

        handle = service.get_connection("anything")

        _, kwargs = factory.calls[0]
        self.assertEqual("http://localhost:4566", kwargs["endpoint_url"])
        self.assertEqual("test", kwargs["aws_access_key_id"])
        self.assertEqual({"addressing_style": "path"}, kwargs["config"].s3)
        self.assertEqual("us-east-1", handle.region)

    def test_changing_endpoint_override_drops_connection(self):
        service, factory = make_service(FakeS3Client())
        service.get_connection("default")

        service.set_endpoint_override(EndpointOverride(endpoint_url="http://minio:9000"))
        handle = service.get_connection("default")

        self.assertEqual(2, len(factory.calls))
        self.assertEqual("http://minio:9000", handle.endpoint_url)
        self.assertEqual("AKIA1", factory.calls[1][1]["aws_access_key_id"])


class ListingTests(unittest.TestCase):
    def test_lists_buckets_sorted_by_name(self):
        service, _ = make_service(FakeS3Client(buckets=["b", "a", "C"]))

        buckets = service.list_buckets(profile_name="default")

        self.assertEqual(["C", "a", "b"], [bucket.name for bucket in buckets])
        self.assertEqual(datetime(2024, 1, 1), buckets[0].creation_date)

    def test_list_objects_filters_folder_marker_and_strips_etags(self):
        response = {
            "Contents": [
                {"Key": "folder/", "Size": 0},
                {"Key": "folder/a.txt", "Size": 3, "ETag": '"abc"', "StorageClass": "STANDARD"},
            ],
            "CommonPrefixes": [{"Prefix": "folder/sub/"}],
            "IsTruncated": False,
            "KeyCount": 3,
        }
        fake_client = FakeS3Client(object_responses={"bucket": [response]})
        service, _ = make_service(fake_client)

        page = service.list_objects(profile_name="default", bucket_name="bucket", prefix="folder/")

        self.assertEqual(["folder/a.txt"], [entry.key for entry in page.files])
        self.assertEqual("abc", page.files[0].etag)
        self.assertEqual(["folder/sub/"], [entry.key for entry in page.folders])
        self.assertTrue(page.folders[0].is_prefix)
        self.assertEqual(0, page.folders[0].size)
        self.assertFalse(page.is_truncated)
        self.assertIsNone(page.continuation_token)
        self.assertEqual(3, page.key_count)
        kwargs = fake_client.list_objects_kwargs[0]
        self.assertEqual("/", kwargs["Delimiter"])
        self.assertEqual("folder/", kwargs["Prefix"])
        self.assertEqual(100, kwargs["MaxKeys"])

    def test_list_objects_clamps_page_size_and_passes_token(self):
        fake_client = FakeS3Client(
            object_responses={
                "bucket": [
                    {"IsTruncated": True, "NextContinuationToken": "t2"},
                    {"IsTruncated": False, "NextContinuationToken": "ignored"},
                ]
            }
        )
        service, _ = make_service(fake_client)

        first = service.list_objects(profile_name="default", bucket_name="bucket", max_keys=5000)
        second = service.list_objects(
            profile_name="default", bucket_name="bucket", max_keys=0, continuation_token="t2"
        )

        self.assertEqual("t2", first.continuation_token)
        self.assertIsNone(second.continuation_token)
        self.assertEqual(1000, fake_client.list_objects_kwargs[0]["MaxKeys"])
        self.assertEqual(1, fake_client.list_objects_kwargs[1]["MaxKeys"])
        self.assertEqual("t2", fake_client.list_objects_kwargs[1]["ContinuationToken"])
        self.assertNotIn("Prefix", fake_client.list_objects_kwargs[0])

    def test_empty_delimiter_lists_flat(self):
        fake_client = FakeS3Client(object_responses={"bucket": [{"Contents": [{"Key": "a/b/c"}]}]})
        service, _ = make_service(fake_client)

        page = service.list_objects(profile_name="default", bucket_name="bucket", delimiter="")

        self.assertEqual(["a/b/c"], [entry.key for entry in page.files])
        self.assertNotIn("Delimiter", fake_client.list_objects_kwargs[0])

    def test_list_all_objects_accumulates_pages(self):
        fake_client = FakeS3Client(
            object_responses={
                "bucket": [
                    {
                        "Contents": [{"Key": "p/a"}, {"Key": "p/b"}],
                        "CommonPrefixes": [{"Prefix": "p/x/"}],
                        "IsTruncated": True,
                        "NextContinuationToken": "t1",
                    },
                    {"Contents": [{"Key": "p/c"}], "IsTruncated": True, "NextContinuationToken": "t2"},
                    {"Contents": [{"Key": "p/d"}], "IsTruncated": False},
                ]
            }
        )
        service, _ = make_service(fake_client)
        progress = []

        listing = service.list_all_objects(
            profile_name="default", bucket_name="bucket", prefix="p/", on_progress=progress.append
        )

        self.assertEqual(["p/a", "p/b", "p/c", "p/d"], [entry.key for entry in listing.files])
        self.assertEqual(["p/x/"], [entry.key for entry in listing.folders])
        self.assertFalse(listing.is_truncated)
        self.assertEqual([2, 3, 4], progress)
        self.assertEqual(
            [None, "t1", "t2"],
            [kwargs.get("ContinuationToken") for kwargs in fake_client.list_objects_kwargs],
        )
        self.assertTrue(all(kwargs["MaxKeys"] == 1000 for kwargs in fake_client.list_objects_kwargs))

    def test_list_all_objects_aborts_before_any_request(self):
        fake_client = FakeS3Client(object_responses={"bucket": []})
        service, _ = make_service(fake_client)

        with self.assertRaises(OperationAbortedError):
            service.list_all_objects(
                profile_name="default", bucket_name="bucket", cancel_requested=lambda: True
            )

        self.assertEqual([], fake_client.list_objects_kwargs)

    def test_list_all_objects_aborts_between_pages(self):
        fake_client = FakeS3Client(
            object_responses={
                "bucket": [
                    {"Contents": [{"Key": "a"}], "IsTruncated": True, "NextContinuationToken": "t1"},
                    {"Contents": [{"Key": "b"}], "IsTruncated": False},
                ]
            }
        )
        service, _ = make_service(fake_client)

        with self.assertRaises(OperationAbortedError):
            service.list_all_objects(
                profile_name="default", bucket_name="bucket", cancel_requested=CancelAfter(1)
            )

        self.assertEqual(1, len(fake_client.list_objects_kwargs))


class DeletePrefixTests(unittest.TestCase):
    def _listing(self, *keys):
        return {"Contents": [{"Key": key} for key in keys], "IsTruncated": False}

    def test_one_failing_key_does_not_stop_the_loop(self):
        fake_client = FakeS3Client(
            object_responses={"bucket": [self._listing("p/a", "p/b", "p/c", "p/d")]},
            delete_errors={("bucket", "p/b"): client_error("AccessDenied", "DeleteObject")},
        )
        service, _ = make_service(fake_client)
        progress = []

        outcome = service.delete_prefix(
            profile_name="default",
            bucket_name="bucket",
            prefix="p/",
            on_progress=lambda attempted, total: progress.append((attempted, total)),
        )

        self.assertEqual(3, outcome.deleted_count)
        self.assertEqual(1, outcome.failed_count)
        self.assertFalse(outcome.success)
        self.assertEqual([(1, 4), (2, 4), (3, 4), (4, 4)], progress)
        failed = [result for result in outcome.results if not result.success]
        self.assertEqual(["p/b"], [result.key for result in failed])
        self.assertIn("AccessDenied", failed[0].error)
        self.assertEqual(
            [("bucket", key) for key in ("p/a", "p/b", "p/c", "p/d", "p/")],
            fake_client.delete_object_calls,
        )
        self.assertEqual("", fake_client.list_objects_kwargs[0].get("Delimiter", ""))

    def test_marker_failure_does_not_change_counts(self):
        fake_client = FakeS3Client(
            object_responses={"bucket": [self._listing("p/a")]},
            delete_errors={("bucket", "p/"): client_error("AccessDenied", "DeleteObject")},
        )
        service, _ = make_service(fake_client)

        outcome = service.delete_prefix(profile_name="default", bucket_name="bucket", prefix="p/")

        self.assertTrue(outcome.success)
        self.assertEqual(1, outcome.deleted_count)
        self.assertEqual(0, outcome.failed_count)

    def test_empty_prefix_deletes_only_the_marker(self):
        fake_client = FakeS3Client(object_responses={"bucket": [self._listing()]})
        service, _ = make_service(fake_client)

        outcome = service.delete_prefix(profile_name="default", bucket_name="bucket", prefix="empty/")

        self.assertTrue(outcome.success)
        self.assertEqual(1, outcome.deleted_count)
        self.assertEqual([("bucket", "empty/")], fake_client.delete_object_calls)

    def test_prefix_without_slash_leaves_sibling_keys(self):
        fake_client = FakeS3Client(
            object_responses={"bucket": [self._listing("photos/a.jpg", "photos-backup/b.jpg")]}
        )
        service, _ = make_service(fake_client)

        outcome = service.delete_prefix(profile_name="default", bucket_name="bucket", prefix="photos")

        self.assertEqual(1, outcome.deleted_count)
        self.assertEqual("photos/", fake_client.list_objects_kwargs[0]["Prefix"])
        self.assertEqual(
            [("bucket", "photos/a.jpg"), ("bucket", "photos/")],
            fake_client.delete_object_calls,
        )

    def test_failing_lone_marker_is_reported(self):
        fake_client = FakeS3Client(
            object_responses={"bucket": [self._listing()]},
            delete_errors={("bucket", "empty/"): client_error("AccessDenied", "DeleteObject")},
        )
        service, _ = make_service(fake_client)

        outcome = service.delete_prefix(profile_name="default", bucket_name="bucket", prefix="empty/")

        self.assertFalse(outcome.success)
        self.assertEqual(0, outcome.deleted_count)
        self.assertEqual(1, outcome.failed_count)

    def test_cancelled_before_start_makes_no_requests(self):
        fake_client = FakeS3Client(object_responses={"bucket": []})
        service, _ = make_service(fake_client)

        outcome = service.delete_prefix(
            profile_name="default", bucket_name="bucket", prefix="p/", cancel_requested=lambda: True
        )

        self.assertTrue(outcome.aborted)
        self.assertFalse(outcome.success)
        self.assertEqual("Operation aborted", outcome.error)
        self.assertEqual((0, 0), (outcome.deleted_count, outcome.failed_count))
        self.assertEqual([], fake_client.list_objects_kwargs)
        self.assertEqual([], fake_client.delete_object_calls)

    def test_cancel_mid_loop_keeps_partial_counts(self):
        fake_client = FakeS3Client(object_responses={"bucket": [self._listing("p/a", "p/b", "p/c")]})
        service, _ = make_service(fake_client)

        # Polled once up front, once before the page and once before each delete.
        outcome = service.delete_prefix(
            profile_name="default", bucket_name="bucket", prefix="p/", cancel_requested=CancelAfter(4)
        )

        self.assertTrue(outcome.aborted)
        self.assertEqual(2, outcome.deleted_count)
        self.assertEqual([("bucket", "p/a"), ("bucket", "p/b")], fake_client.delete_object_calls)

    def test_listing_failure_reports_error(self):
        error = client_error("NoSuchBucket", "ListObjectsV2", "The specified bucket does not exist")
        fake_client = FakeS3Client(object_responses={"bucket": [error]})
        service, _ = make_service(fake_client)

        outcome = service.delete_prefix(profile_name="default", bucket_name="bucket", prefix="p/")

        self.assertFalse(outcome.success)
        self.assertEqual(str(error), outcome.error)
        self.assertEqual((0, 0), (outcome.deleted_count, outcome.failed_count))

    def test_delete_files_isolates_failures(self):
        fake_client = FakeS3Client(
            delete_errors={("bucket", "b"): client_error("AccessDenied", "DeleteObject")},
        )
        service, _ = make_service(fake_client)

        outcome = service.delete_files(profile_name="default", bucket_name="bucket", keys=["a", "b", "c"])

        self.assertEqual(2, outcome.deleted_count)
        self.assertEqual(1, outcome.failed_count)
        self.assertEqual(["a", "b", "c"], [result.key for result in outcome.results])


class ObjectOperationTests(unittest.TestCase):
    def test_rename_copies_then_deletes(self):
        fake_client = FakeS3Client()
        service, _ = make_service(fake_client)

        service.rename_file(
            profile_name="default", bucket_name="bucket", source_key="a b/ü.txt", destination_key="new.txt"
        )

        self.assertEqual(
            [{"Bucket": "bucket", "Key": "new.txt", "CopySource": {"Bucket": "bucket", "Key": "a b/ü.txt"}}],
            fake_client.copy_object_calls,
        )
        self.assertEqual([("bucket", "a b/ü.txt")], fake_client.delete_object_calls)

    def test_rename_leaves_source_when_copy_fails(self):
        fake_client = FakeS3Client(copy_errors={("bucket", "new.txt"): client_error("AccessDenied", "CopyObject")})
        service, _ = make_service(fake_client)

        with self.assertRaises(ClientError):
            service.rename_file(
                profile_name="default", bucket_name="bucket", source_key="old.txt", destination_key="new.txt"
            )

        self.assertEqual([], fake_client.delete_object_calls)

    def test_copy_between_buckets(self):
        fake_client = FakeS3Client()
        service, _ = make_service(fake_client)

        service.copy_file(
            profile_name="default",
            source_bucket="src",
            source_key="a.txt",
            destination_bucket="dst",
            destination_key="b.txt",
        )

        call = fake_client.copy_object_calls[0]
        self.assertEqual("dst", call["Bucket"])
        self.assertEqual({"Bucket": "src", "Key": "a.txt"}, call["CopySource"])

    def test_metadata_includes_tags(self):
        fake_client = FakeS3Client(
            head_object_responses={
                ("bucket", "a.json"): {
                    "ContentLength": 12,
                    "ContentType": "application/json",
                    "ETag": '"etag"',
                    "Metadata": {"owner": "me"},
                }
            },
            tagging_responses={("bucket", "a.json"): {"TagSet": [{"Key": "env", "Value": "prod"}]}},
        )
        service, _ = make_service(fake_client)

        metadata = service.get_object_metadata(profile_name="default", bucket_name="bucket", key="a.json")

        self.assertEqual("s3://bucket/a.json", metadata.s3_url)
        self.assertEqual(12, metadata.content_length)
        self.assertEqual("etag", metadata.etag)
        self.assertEqual({"owner": "me"}, metadata.custom_metadata)
        self.assertEqual({"env": "prod"}, metadata.tags)

    def test_metadata_tolerates_denied_tagging(self):
        fake_client = FakeS3Client(
            head_object_responses={("bucket", "a.txt"): {"ContentLength": 1}},
            tagging_responses={("bucket", "a.txt"): client_error("AccessDenied", "GetObjectTagging")},
        )
        service, _ = make_service(fake_client)

        with self.assertLogs("s3desk.services", level="WARNING"):
            metadata = service.get_object_metadata(profile_name="default", bucket_name="bucket", key="a.txt")

        self.assertEqual({}, metadata.tags)

    def test_metadata_head_failure_propagates(self):
        fake_client = FakeS3Client(
            head_object_responses={("bucket", "gone"): client_error("404", "HeadObject", "Not Found")}
        )
        service, _ = make_service(fake_client)

        with self.assertRaises(ClientError):
            service.get_object_metadata(profile_name="default", bucket_name="bucket", key="gone")

    def test_upload_content_infers_content_type(self):
        fake_client = FakeS3Client()
        service, _ = make_service(fake_client)

        service.upload_content(profile_name="default", bucket_name="bucket", key="data.csv", content="a,b")

        call = fake_client.put_object_calls[0]
        self.assertEqual(b"a,b", call["Body"])
        self.assertEqual("text/csv", call["ContentType"])

    def test_create_folder_appends_slash(self):
        fake_client = FakeS3Client()
        service, _ = make_service(fake_client)

        key = service.create_folder(profile_name="default", bucket_name="bucket", prefix="new")

        self.assertEqual("new/", key)
        self.assertEqual({"Bucket": "bucket", "Key": "new/", "Body": b""}, fake_client.put_object_calls[0])

    def test_download_content_decodes_utf8(self):
        fake_client = FakeS3Client(get_object_responses={("bucket", "a.txt"): "héllo".encode("utf-8")})
        service, _ = make_service(fake_client)

        self.assertEqual(
            "héllo", service.download_content(profile_name="default", bucket_name="bucket", key="a.txt")
        )

    def test_get_file_size(self):
        fake_client = FakeS3Client(head_object_responses={("bucket", "a"): {"ContentLength": 42}})
        service, _ = make_service(fake_client)

        self.assertEqual(42, service.get_file_size(profile_name="default", bucket_name="bucket", key="a"))


class TransferTests(unittest.TestCase):
    def test_download_reports_progress_and_creates_directories(self):
        fake_client = FakeS3Client(
            head_object_responses={("bucket", "a.bin"): {"ContentLength": 10}},
            transfer_sequences={("download", "bucket", "a.bin"): [4, 6]},
        )
        service, _ = make_service(fake_client)
        progress = []

        with tempfile.TemporaryDirectory() as tmp:
            destination = Path(tmp) / "nested" / "a.bin"
            service.download_file(
                profile_name="default",
                bucket_name="bucket",
                key="a.bin",
                destination=str(destination),
                progress_callback=progress.append,
            )

            self.assertTrue(destination.exists())

        self.assertEqual([(4, 10, 40), (10, 10, 100)], [(p.loaded, p.total, p.percentage) for p in progress])

    def test_failed_download_removes_partial_file(self):
        fake_client = FakeS3Client(
            head_object_responses={("bucket", "a.bin"): {"ContentLength": 10}},
            download_errors={("bucket", "a.bin"): client_error("InternalError", "GetObject")},
        )
        service, _ = make_service(fake_client)

        with tempfile.TemporaryDirectory() as tmp:
            destination = Path(tmp) / "a.bin"
            with self.assertRaises(ClientError):
                service.download_file(
                    profile_name="default", bucket_name="bucket", key="a.bin", destination=str(destination)
                )

            self.assertFalse(destination.exists())

    def test_cancelled_download_removes_partial_file(self):
        fake_client = FakeS3Client(
            head_object_responses={("bucket", "a.bin"): {"ContentLength": 10}},
            transfer_sequences={("download", "bucket", "a.bin"): [4, 6]},
        )
        service, _ = make_service(fake_client)

        with tempfile.TemporaryDirectory() as tmp:
            destination = Path(tmp) / "a.bin"
            with self.assertRaises(OperationAbortedError):
                service.download_file(
                    profile_name="default",
                    bucket_name="bucket",
                    key="a.bin",
                    destination=str(destination),
                    cancel_requested=lambda: True,
                )

            self.assertFalse(destination.exists())

    def test_upload_files_collects_outcomes(self):
        fake_client = FakeS3Client(
            upload_errors={("bucket", "b.txt"): client_error("EntityTooLarge", "PutObject")},
        )
        service, _ = make_service(fake_client)
        progress = []

        with tempfile.TemporaryDirectory() as tmp:
            items = []
            for name in ("a.txt", "b.txt", "c.png"):
                path = Path(tmp) / name
                path.write_bytes(b"data")
                items.append(UploadItem(source_path=str(path), key=name))

            outcome = service.upload_files(
                profile_name="default",
                bucket_name="bucket",
                items=items,
                on_progress=lambda attempted, total: progress.append((attempted, total)),
            )

        self.assertEqual(2, outcome.uploaded_count)
        self.assertEqual(1, outcome.failed_count)
        self.assertFalse(outcome.success)
        self.assertEqual([(1, 3), (2, 3), (3, 3)], progress)
        self.assertEqual({"ContentType": "image/png"}, fake_client.upload_file_calls[2][3])

    def test_upload_files_stops_when_cancelled(self):
        fake_client = FakeS3Client()
        service, _ = make_service(fake_client)

        outcome = service.upload_files(
            profile_name="default",
            bucket_name="bucket",
            items=[UploadItem("/nonexistent/a", "a")],
            cancel_requested=lambda: True,
        )

        self.assertTrue(outcome.aborted)
        self.assertEqual([], fake_client.upload_file_calls)


if __name__ == "__main__":
    unittest.main()
