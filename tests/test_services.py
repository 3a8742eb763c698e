import io
import unittest
from datetime import datetime

from botocore.exceptions import ClientError, EndpointConnectionError, ReadTimeoutError

from s3_ftp.errors import ObjectNotFoundError, StorageOperationError, TransferInterruptedError
from s3_ftp.models import RestoreRequest, RestoreStatus, RetrievalTier
from s3_ftp.services import S3Service


def client_error(code, operation="HeadObject"):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeBody:
    def __init__(self, data=b"", error=None, fail_after=None):
        self._stream = io.BytesIO(data)
        self._error = error
        self._fail_after = fail_after
        self.closed = False

    def read(self, size=-1):
        if self._error is not None and self._stream.tell() >= self._fail_after:
            raise self._error
        return self._stream.read(size)

    def close(self):
        self.closed = True


class FakePaginator:
    def __init__(self, client):
        self._client = client

    def paginate(self, **kwargs):
        self._client.paginate_calls.append(kwargs)
        for page in self._client.pages:
            if isinstance(page, Exception):
                raise page
            yield page


class FakeS3Client:
    def __init__(
        self,
        buckets=None,
        pages=None,
        head_object_responses=None,
        get_object_responses=None,
        upload_sequences=None,
        upload_error=None,
        restore_error=None,
    ):
        self.buckets = buckets or []
        self.pages = pages or []
        self.paginate_calls = []
        self.paginator_names = []
        self.head_object_responses = head_object_responses or {}
        self.head_object_calls = []
        self.get_object_responses = get_object_responses or {}
        self.upload_calls = []
        self.upload_sequences = upload_sequences or []
        self.upload_error = upload_error
        self.restore_calls = []
        self.restore_error = restore_error

    def list_buckets(self):
        return {"Buckets": [{"Name": name} for name in self.buckets]}

    def get_paginator(self, name):
        self.paginator_names.append(name)
        return FakePaginator(self)

    def head_object(self, **kwargs):
        self.head_object_calls.append(kwargs)
        response = self.head_object_responses.get((kwargs["Bucket"], kwargs["Key"]))
        if response is None:
            raise client_error("404")
        if isinstance(response, Exception):
            raise response
        return response

    def get_object(self, **kwargs):
        response = self.get_object_responses.get((kwargs["Bucket"], kwargs["Key"]))
        if response is None:
            raise client_error("NoSuchKey", "GetObject")
        return response

    def upload_fileobj(self, fileobj, bucket, key, ExtraArgs=None, Callback=None, Config=None):
        self.upload_calls.append(
            {
                "data": fileobj.read(),
                "bucket": bucket,
                "key": key,
                "extra_args": ExtraArgs,
                "config": Config,
            }
        )
        for amount in self.upload_sequences:
            if Callback:
                Callback(amount)
        if self.upload_error is not None:
            raise self.upload_error

    def restore_object(self, **kwargs):
        self.restore_calls.append(kwargs)
        if self.restore_error is not None:
            raise self.restore_error


class S3ServiceTests(unittest.TestCase):
    def make_service(self, fake_client):
        return S3Service(client_factory=lambda *_, **__: fake_client)

    def test_creates_client_lazily_with_endpoint(self):
        calls = []

        def factory(service_name, **kwargs):
            calls.append((service_name, kwargs))
            return FakeS3Client(buckets=["one"])

        service = S3Service(endpoint_url="http://localhost:9000", client_factory=factory)

        self.assertEqual([], calls)
        self.assertEqual(["one"], service.list_buckets())
        service.list_buckets()
        self.assertEqual(1, len(calls))
        self.assertEqual("s3", calls[0][0])
        self.assertEqual("http://localhost:9000", calls[0][1]["endpoint_url"])
        self.assertIn("config", calls[0][1])

    def test_lists_prefixes_before_objects_with_delimiter(self):
        pages = [
            {
                "CommonPrefixes": [{"Prefix": "photos/2023/"}],
                "Contents": [
                    {
                        "Key": "photos/a.jpg",
                        "Size": 10,
                        "LastModified": datetime(2024, 1, 2, 3, 4, 5),
                        "StorageClass": "DEEP_ARCHIVE",
                    }
                ],
            },
            {"Contents": [{"Key": "photos/b.jpg", "Size": 20}]},
        ]
        fake_client = FakeS3Client(pages=pages)
        service = self.make_service(fake_client)

        objects = service.list_objects("bucket-one", "photos/")

        self.assertEqual(["photos/2023/", "photos/a.jpg", "photos/b.jpg"], [o.key for o in objects])
        self.assertTrue(objects[0].is_prefix)
        self.assertEqual("2024-01-02T03:04:05Z", objects[1].last_modified)
        self.assertEqual("DEEP_ARCHIVE", objects[1].storage_class)
        self.assertEqual("STANDARD", objects[2].storage_class)
        self.assertEqual(["list_objects_v2"], fake_client.paginator_names)
        self.assertEqual(
            {"Bucket": "bucket-one", "Prefix": "photos/", "Delimiter": "/"},
            fake_client.paginate_calls[0],
        )

    def test_recursive_listing_omits_delimiter_and_empty_prefix(self):
        fake_client = FakeS3Client(pages=[{"Contents": []}])
        service = self.make_service(fake_client)

        self.assertEqual([], service.list_objects("bucket-one", "", recursive=True))
        self.assertEqual({"Bucket": "bucket-one"}, fake_client.paginate_calls[0])

    def test_listing_errors_are_wrapped(self):
        fake_client = FakeS3Client(pages=[client_error("AccessDenied", "ListObjectsV2")])
        service = self.make_service(fake_client)

        with self.assertRaises(StorageOperationError) as ctx:
            service.list_objects("bucket-one", "secret/")
        self.assertEqual("listing objects", ctx.exception.operation)
        self.assertIn("secret/", str(ctx.exception))

    def test_head_object_parses_restore_header(self):
        head_responses = {
            ("bucket-one", "a.txt"): {
                "ContentLength": 123,
                "LastModified": datetime(2024, 1, 1, 12, 0, 0),
                "StorageClass": "GLACIER",
                "ETag": '"abc123"',
                "ContentType": "text/plain",
                "Restore": 'ongoing-request="false", expiry-date="Fri, 23 Dec 2022 00:00:00 GMT"',
                "Metadata": {"custom": "value"},
            }
        }
        fake_client = FakeS3Client(head_object_responses=head_responses)
        service = self.make_service(fake_client)

        details = service.head_object("bucket-one", "a.txt")

        self.assertEqual(123, details.size)
        self.assertEqual("2024-01-01T12:00:00Z", details.last_modified)
        self.assertEqual("GLACIER", details.storage_class)
        self.assertIs(RestoreStatus.AVAILABLE, details.restore_status)
        self.assertEqual('"abc123"', details.etag)
        self.assertEqual("text/plain", details.content_type)
        self.assertEqual({"custom": "value"}, details.metadata)
        self.assertEqual({"Bucket": "bucket-one", "Key": "a.txt"}, fake_client.head_object_calls[0])

    def test_head_object_defaults_storage_class(self):
        fake_client = FakeS3Client(head_object_responses={("b", "k"): {"ContentLength": 1}})
        service = self.make_service(fake_client)

        details = service.head_object("b", "k")

        self.assertEqual("STANDARD", details.storage_class)
        self.assertIs(RestoreStatus.NONE, details.restore_status)

    def test_head_object_missing_key_raises_not_found(self):
        service = self.make_service(FakeS3Client())

        with self.assertRaises(ObjectNotFoundError) as ctx:
            service.head_object("b", "missing.txt")
        self.assertEqual("missing.txt", ctx.exception.key)

    def test_connection_errors_are_wrapped(self):
        error = EndpointConnectionError(endpoint_url="https://s3")
        fake_client = FakeS3Client(head_object_responses={("b", "k"): error})
        service = self.make_service(fake_client)

        with self.assertRaises(StorageOperationError) as ctx:
            service.head_object("b", "k")
        self.assertNotIsInstance(ctx.exception, ObjectNotFoundError)
        self.assertIs(error, ctx.exception.__cause__)

    def test_download_streams_body_with_progress(self):
        body = FakeBody(b"hello world")
        fake_client = FakeS3Client(get_object_responses={("b", "k"): {"Body": body, "ContentLength": 11}})
        service = self.make_service(fake_client)
        sink = io.BytesIO()
        reported = []

        written = service.download("b", "k", sink, lambda n, t: reported.append((n, t)))

        self.assertEqual(11, written)
        self.assertEqual(b"hello world", sink.getvalue())
        self.assertEqual([(11, 11)], reported)
        self.assertTrue(body.closed)

    def test_download_missing_object_is_pre_transfer_failure(self):
        service = self.make_service(FakeS3Client())

        with self.assertRaises(ObjectNotFoundError):
            service.download("b", "missing", io.BytesIO())

    def test_download_interrupted_mid_stream(self):
        body = FakeBody(b"x" * 10, error=ReadTimeoutError(endpoint_url="https://s3"), fail_after=10)
        fake_client = FakeS3Client(get_object_responses={("b", "k"): {"Body": body}})
        service = self.make_service(fake_client)

        with self.assertRaises(TransferInterruptedError) as ctx:
            service.download("b", "k", io.BytesIO())

        self.assertEqual(10, ctx.exception.bytes_transferred)
        self.assertIsNone(ctx.exception.total)
        self.assertTrue(body.closed)

    def test_upload_passes_storage_class_and_single_threaded_config(self):
        fake_client = FakeS3Client(upload_sequences=[3, 2])
        service = self.make_service(fake_client)
        reported = []

        service.upload("b", "dir/a.txt", io.BytesIO(b"abcde"), 5, "DEEP_ARCHIVE", lambda n, t: reported.append((n, t)))

        call = fake_client.upload_calls[0]
        self.assertEqual(b"abcde", call["data"])
        self.assertEqual("dir/a.txt", call["key"])
        self.assertEqual({"StorageClass": "DEEP_ARCHIVE"}, call["extra_args"])
        self.assertFalse(call["config"].use_threads)
        self.assertEqual([(3, 5), (5, 5)], reported)

    def test_upload_without_storage_class_sends_no_extra_args(self):
        fake_client = FakeS3Client()
        service = self.make_service(fake_client)

        service.upload("b", "a.txt", io.BytesIO(b""), 0)

        self.assertIsNone(fake_client.upload_calls[0]["extra_args"])

    def test_upload_failure_before_any_bytes_is_storage_error(self):
        fake_client = FakeS3Client(upload_error=client_error("AccessDenied", "PutObject"))
        service = self.make_service(fake_client)

        with self.assertRaises(StorageOperationError) as ctx:
            service.upload("b", "a.txt", io.BytesIO(b"abc"), 3)
        self.assertEqual("uploading", ctx.exception.operation)

    def test_upload_failure_after_progress_is_interrupted_transfer(self):
        fake_client = FakeS3Client(
            upload_sequences=[1024],
            upload_error=ReadTimeoutError(endpoint_url="https://s3"),
        )
        service = self.make_service(fake_client)

        with self.assertRaises(TransferInterruptedError) as ctx:
            service.upload("b", "a.txt", io.BytesIO(b"abc"), 4096)

        self.assertEqual(1024, ctx.exception.bytes_transferred)
        self.assertEqual(4096, ctx.exception.total)

    def test_restore_object_sends_request(self):
        fake_client = FakeS3Client()
        service = self.make_service(fake_client)

        service.restore_object(RestoreRequest(bucket="b", key="k", days=3, tier=RetrievalTier.BULK))

        self.assertEqual(
            [
                {
                    "Bucket": "b",
                    "Key": "k",
                    "RestoreRequest": {"Days": 3, "GlacierJobParameters": {"Tier": "Bulk"}},
                }
            ],
            fake_client.restore_calls,
        )

    def test_restore_errors_are_wrapped_with_key(self):
        fake_client = FakeS3Client(restore_error=client_error("RestoreAlreadyInProgress", "RestoreObject"))
        service = self.make_service(fake_client)

        with self.assertRaises(StorageOperationError) as ctx:
            service.restore_object(RestoreRequest(bucket="b", key="k"))
        self.assertEqual("k", ctx.exception.key)
        self.assertEqual("restoring object", ctx.exception.operation)


if __name__ == "__main__":
    unittest.main()
