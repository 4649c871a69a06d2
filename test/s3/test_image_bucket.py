import base64
import typing

import boto3
import pytest
from moto import mock_aws

from pc_academy.models.community_models import ImageUploadModel
from pc_academy.s3.image_bucket import (
    MAX_IMAGE_SIZE_BYTES,
    ImageBucket,
    InvalidImageError,
    bucket_name_and_key_to_http_url,
    decode_image,
)

REGION = "us-west-1"
BUCKET = "test-images"
PNG_BYTES = b"\x89PNG\r\n\x1a\nfakeimage"


def _upload(data: bytes = PNG_BYTES, content_type: str = "image/png") -> ImageUploadModel:
    return ImageUploadModel(contentType=content_type, data=base64.b64encode(data).decode("ascii"))


@pytest.fixture
def s3_client(aws_credentials) -> typing.Iterator:
    with mock_aws():
        client = boto3.client("s3", region_name=REGION)
        client.create_bucket(Bucket=BUCKET, CreateBucketConfiguration={"LocationConstraint": REGION})
        yield client


def test_bucket_name_and_key_to_http_url() -> None:
    assert (
        bucket_name_and_key_to_http_url("us-west-1", "bucket", "builds/a.png")
        == "https://bucket.s3.us-west-1.amazonaws.com/builds/a.png"
    )


def test_decode_image() -> None:
    assert decode_image(_upload()) == PNG_BYTES


def test_decode_data_url() -> None:
    upload = ImageUploadModel(
        contentType="image/png", data="data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")
    )
    assert decode_image(upload) == PNG_BYTES


def test_decode_rejects_unsupported_type() -> None:
    with pytest.raises(InvalidImageError):
        decode_image(_upload(content_type="image/bmp"))


def test_decode_rejects_bad_base64() -> None:
    with pytest.raises(InvalidImageError):
        decode_image(ImageUploadModel(contentType="image/png", data="not base64!!"))


def test_decode_rejects_oversized_image() -> None:
    with pytest.raises(InvalidImageError):
        decode_image(_upload(data=b"\x00" * (MAX_IMAGE_SIZE_BYTES + 1)))


def test_upload_images(s3_client) -> None:
    bucket = ImageBucket(BUCKET, REGION)
    urls = bucket.upload_images("builds/b1", [_upload(), _upload(content_type="image/webp")])

    assert len(urls) == 2
    assert urls[0].startswith(f"https://{BUCKET}.s3.{REGION}.amazonaws.com/builds/b1/")
    assert urls[0].endswith(".png")
    assert urls[1].endswith(".webp")

    key = urls[0].split(".amazonaws.com/")[1]
    stored = s3_client.get_object(Bucket=BUCKET, Key=key)
    assert stored["Body"].read() == PNG_BYTES
    assert stored["ContentType"] == "image/png"


def test_upload_nothing_when_any_image_is_invalid(s3_client) -> None:
    bucket = ImageBucket(BUCKET, REGION)
    with pytest.raises(InvalidImageError):
        bucket.upload_images("builds/b1", [_upload(), _upload(content_type="text/plain")])
    assert s3_client.list_objects_v2(Bucket=BUCKET).get("KeyCount", 0) == 0
