import unittest
from unittest import mock
from unittest.mock import MagicMock

from botocore.exceptions import ClientError

from accountify.storage import S3StorageClient, StorageError


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class S3StorageClientTests(unittest.TestCase):
    def setUp(self):
        patcher = mock.patch("accountify.storage.boto3.client")
        self.boto_client = patcher.start()
        self.addCleanup(patcher.stop)
        self.s3 = MagicMock()
        self.boto_client.return_value = self.s3
        self.storage = S3StorageClient(
            bucket="client-files",
            region="us-east-1",
            endpoint="http://localhost:9000",
            access_key_id="key",
            secret_access_key="secret",
        )

    def test_client_uses_configured_endpoint(self):
        args, kwargs = self.boto_client.call_args
        self.assertEqual(args, ("s3",))
        self.assertEqual(kwargs["endpoint_url"], "http://localhost:9000")
        self.assertEqual(kwargs["region_name"], "us-east-1")
        self.assertEqual(kwargs["config"].signature_version, "s3v4")

    def test_blank_settings_fall_back_to_boto_defaults(self):
        S3StorageClient(
            bucket="client-files",
            region="",
            endpoint="",
            access_key_id="",
            secret_access_key="",
        )
        kwargs = self.boto_client.call_args.kwargs
        self.assertIsNone(kwargs["endpoint_url"])
        self.assertIsNone(kwargs["aws_access_key_id"])

    def test_upload_refuses_to_overwrite(self):
        self.storage.upload_bytes("c1/1700000000000.pdf", b"%PDF", "application/pdf")
        self.s3.put_object.assert_called_once_with(
            Bucket="client-files",
            Key="c1/1700000000000.pdf",
            Body=b"%PDF",
            ContentType="application/pdf",
            IfNoneMatch="*",
        )

    def test_upload_conflict_raises_storage_error(self):
        self.s3.put_object.side_effect = _client_error("PreconditionFailed", "PutObject")
        with self.assertRaises(StorageError):
            self.storage.upload_bytes("c1/dup.pdf", b"%PDF")

    def test_remove_deletes_in_one_batch(self):
        self.s3.delete_objects.return_value = {"Deleted": [{"Key": "a"}, {"Key": "b"}]}
        self.storage.remove(["a", "b"])
        self.s3.delete_objects.assert_called_once_with(
            Bucket="client-files",
            Delete={"Objects": [{"Key": "a"}, {"Key": "b"}], "Quiet": True},
        )

    def test_remove_nothing_skips_request(self):
        self.storage.remove([])
        self.s3.delete_objects.assert_not_called()

    def test_remove_reports_per_key_errors(self):
        self.s3.delete_objects.return_value = {
            "Errors": [{"Key": "b", "Code": "AccessDenied"}]
        }
        with self.assertRaises(StorageError) as ctx:
            self.storage.remove(["a", "b"])
        self.assertIn("b", str(ctx.exception))

    def test_remove_request_failure(self):
        self.s3.delete_objects.side_effect = _client_error("InternalError", "DeleteObjects")
        with self.assertRaises(StorageError):
            self.storage.remove(["a"])

    def test_get_bytes(self):
        body = MagicMock()
        body.read.return_value = b"data"
        self.s3.get_object.return_value = {"Body": body}
        self.assertEqual(self.storage.get_bytes("c1/1.pdf"), b"data")
        self.s3.get_object.assert_called_once_with(Bucket="client-files", Key="c1/1.pdf")

    def test_get_missing_object(self):
        self.s3.get_object.side_effect = _client_error("NoSuchKey", "GetObject")
        with self.assertRaises(FileNotFoundError):
            self.storage.get_bytes("c1/missing.pdf")

    def test_get_other_failure(self):
        self.s3.get_object.side_effect = _client_error("AccessDenied", "GetObject")
        with self.assertRaises(StorageError):
            self.storage.get_bytes("c1/1.pdf")

    def test_presign_get(self):
        self.s3.generate_presigned_url.return_value = "https://signed.example/obj"
        url = self.storage.presign_get("c1/1.pdf", expires_in=60)
        self.assertEqual(url, "https://signed.example/obj")
        self.s3.generate_presigned_url.assert_called_once_with(
            ClientMethod="get_object",
            Params={"Bucket": "client-files", "Key": "c1/1.pdf"},
            ExpiresIn=60,
        )


if __name__ == "__main__":
    unittest.main()
