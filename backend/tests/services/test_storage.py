"""
Tests for S3 asset storage (boto3 client mocked).
"""

from unittest.mock import MagicMock

from vista.services.storage import S3AssetStorage


async def test_put_uploads_and_returns_public_url():
    s3 = MagicMock()
    storage = S3AssetStorage(bucket="notion-images", public_base_url="https://cdn.example.com/", client=s3)

    url = await storage.put("1/page/image-0.png", b"data", "image/png")

    assert url == "https://cdn.example.com/1/page/image-0.png"
    s3.put_object.assert_called_once_with(
        Bucket="notion-images",
        Key="1/page/image-0.png",
        Body=b"data",
        ContentType="image/png",
    )


def test_public_url_without_cdn():
    storage = S3AssetStorage(
        bucket="notion-images",
        endpoint="https://s3.internal.test",
        client=MagicMock(),
    )

    assert storage.public_url("a/b.png") == "https://s3.internal.test/notion-images/a/b.png"
