import base64
import binascii
import logging
import uuid

import boto3
from botocore.exceptions import ClientError

from pc_academy.models.community_models import ImageUploadModel

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

MAX_IMAGE_SIZE_BYTES = 5 * 1024 * 1024

ALLOWED_IMAGE_TYPES = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}


class InvalidImageError(ValueError):
    pass


def bucket_name_and_key_to_http_url(region: str, bucket_name: str, bucket_key: str) -> str:
    return f"https://{bucket_name}.s3.{region}.amazonaws.com/{bucket_key}"


def decode_image(image: ImageUploadModel) -> bytes:
    """
    Decodes an inline upload and checks its type and size.

    :raises InvalidImageError: for an unsupported type, bad base64, or an image over 5 MB
    """
    if image.contentType not in ALLOWED_IMAGE_TYPES:
        raise InvalidImageError(f"Unsupported image type: {image.contentType}")

    data = image.data
    # Accept data URLs as produced by FileReader.readAsDataURL
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]

    try:
        contents = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidImageError("Image data is not valid base64.")

    if len(contents) > MAX_IMAGE_SIZE_BYTES:
        raise InvalidImageError(f"Image is {len(contents)} bytes; the limit is {MAX_IMAGE_SIZE_BYTES} bytes.")
    return contents


class ImageBucket:
    """Public-read bucket for build and discussion images."""

    def __init__(self, bucket_name: str, region: str) -> None:
        self.client = boto3.client("s3", region_name=region)
        self.bucket_name = bucket_name
        self.region = region

    def put(self, *, key: str, contents: bytes, content_type: str) -> str:
        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=contents,
                ContentType=content_type,
            )
        except ClientError as e:
            _LOGGER.error(f"Failed to upload {key} to {self.bucket_name}: {e.response['Error']['Message']}", exc_info=True)
            raise
        return bucket_name_and_key_to_http_url(self.region, self.bucket_name, key)

    def upload_images(self, prefix: str, images: list[ImageUploadModel]) -> list[str]:
        """
        Validates every image before uploading any of them, then uploads in order.

        :returns: the public URLs, in the same order as `images`
        :raises InvalidImageError: if any image fails validation
        """
        decoded = [(image.contentType, decode_image(image)) for image in images]

        urls = []
        for content_type, contents in decoded:
            key = f"{prefix}/{uuid.uuid4().hex}.{ALLOWED_IMAGE_TYPES[content_type]}"
            urls.append(self.put(key=key, contents=contents, content_type=content_type))
        _LOGGER.info(f"Uploaded {len(urls)} images under {prefix}/.")
        return urls
