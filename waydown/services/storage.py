import asyncio
import io
import logging
import os
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
from PIL import Image, ImageOps, UnidentifiedImageError

from ..config import settings
from ..exceptions import CorruptedImageError, ImageTooLargeError, UnsupportedImageFormatError

# Configure logging
logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


class StorageService:
    @staticmethod
    def _resolved_s3_config():
        return {
            "bucket": settings.s3_bucket,
            "region": settings.s3_region or "us-east-1",
            "endpoint": settings.s3_endpoint_url,
            "public_base": settings.s3_public_base_url,
            "use_path_style": settings.s3_use_path_style,
            "access_key_id": settings.s3_access_key_id,
            "secret_access_key": settings.s3_secret_access_key,
        }

    @staticmethod
    def _s3_client():
        import boto3
        from botocore.config import Config as BotoConfig

        cfg = StorageService._resolved_s3_config()
        session = boto3.session.Session(
            aws_access_key_id=cfg["access_key_id"],
            aws_secret_access_key=cfg["secret_access_key"],
            region_name=cfg["region"],
        )
        return session.client(
            "s3",
            endpoint_url=cfg["endpoint"],
            config=BotoConfig(
                s3={"addressing_style": "path" if cfg["use_path_style"] else "auto"}),
        )

    @staticmethod
    async def save_spot_photo(spot_id: int, filename: str, content: bytes) -> str:
        _validate_image_or_raise(filename, content, settings.photo_max_mb)
        return await StorageService._store(f"spots/{spot_id}", filename, content)

    @staticmethod
    async def save_post_image(post_id: int, filename: str, content: bytes) -> str:
        _validate_image_or_raise(filename, content, settings.photo_max_mb)
        return await StorageService._store(f"posts/{post_id}", filename, content)

    @staticmethod
    async def save_avatar(user_id: int, filename: str, content: bytes) -> str:
        """Validate, crop to a square thumbnail and store a profile picture"""
        _validate_image_or_raise(filename, content, settings.avatar_max_mb)
        resized = await asyncio.to_thread(
            resize_square, content, settings.avatar_size_px)
        return await StorageService._store(f"avatars/{user_id}", "avatar.png", resized)

    @staticmethod
    async def _store(folder: str, filename: str, content: bytes) -> str:
        ext = os.path.splitext(filename.lower())[1] or ".bin"
        key = f"{folder}/{uuid.uuid4().hex}{ext}"
        if settings.storage_backend == "s3":
            await StorageService._save_s3(key, filename, content)
        else:
            await StorageService._save_local(key, content)
        return StorageService.public_url(key)

    @staticmethod
    async def _save_local(key: str, content: bytes) -> None:
        target_path = Path(settings.media_root).resolve().joinpath(*key.split("/"))
        target_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(target_path, "wb") as f:
            await f.write(content)

    @staticmethod
    async def _save_s3(key: str, filename: str, content: bytes) -> None:
        cfg = StorageService._resolved_s3_config()
        if not cfg["bucket"]:
            raise ValueError(
                "S3 bucket is not configured. Set APP_S3_BUCKET.")

        def _upload_to_s3():
            StorageService._s3_client().put_object(
                Bucket=cfg["bucket"], Key=key,
                Body=content, ContentType=_guess_content_type(filename))

        # Run S3 upload in thread pool to avoid blocking event loop
        await asyncio.to_thread(_upload_to_s3)

    @staticmethod
    def public_url(key: str) -> str:
        """Resolve a storage key to the URL clients should load"""
        if settings.storage_backend == "s3":
            cfg = StorageService._resolved_s3_config()
            if cfg["public_base"]:
                return f"{cfg['public_base'].rstrip('/')}/{key}"
            return StorageService.generate_signed_url(key)
        return f"{settings.local_base_url.rstrip('/')}/media/{key}"

    @staticmethod
    def generate_signed_url(s3_key: str, expiration: int = 7 * 24 * 3600) -> str:
        """
        Generate a presigned GET URL for an S3 object.

        Args:
            s3_key: The S3 object key (e.g., "spots/34/abc.png")
            expiration: URL lifetime in seconds (S3 caps this at 7 days)
        """
        from botocore.exceptions import ClientError

        cfg = StorageService._resolved_s3_config()
        if not cfg["bucket"]:
            raise ValueError("S3 bucket is not configured")
        try:
            return StorageService._s3_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": cfg["bucket"], "Key": s3_key},
                ExpiresIn=expiration,
            )
        except ClientError as e:
            logger.error(f"Error generating signed URL for {s3_key}: {e}")
            raise ValueError(f"Failed to generate signed URL: {e}")

    @staticmethod
    async def delete_urls(urls: list[str]) -> None:
        for url in urls:
            await StorageService.delete_url(url)

    @staticmethod
    async def delete_url(url: str) -> None:
        """Best-effort removal of a stored file given the URL returned at upload time"""
        key = _key_from_url(url)
        if key is None:
            return
        if settings.storage_backend == "s3":
            cfg = StorageService._resolved_s3_config()
            try:
                await asyncio.to_thread(
                    StorageService._s3_client().delete_object, Bucket=cfg["bucket"], Key=key)
            except Exception as e:
                logger.error(f"Failed to delete S3 object {key}: {e}")
            return
        path = os.path.join(os.path.abspath(settings.media_root), *key.split("/"))
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.warning(f"Media file not found: {path}")
        except OSError as e:
            logger.error(f"Failed to delete local media {path}: {e}")


def _key_from_url(url: str) -> Optional[str]:
    url = url.split("?", 1)[0]
    public_base = (settings.s3_public_base_url or "").rstrip("/")
    if public_base and url.startswith(public_base + "/"):
        return url[len(public_base) + 1:]
    if "/media/" in url:
        return url.split("/media/", 1)[1]
    return None


def resize_square(content: bytes, size: int) -> bytes:
    """Center-crop an image to size x size pixels and encode it as PNG"""
    with Image.open(io.BytesIO(content)) as img:
        img = ImageOps.exif_transpose(img)
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA")
        thumb = ImageOps.fit(img, (size, size), method=Image.Resampling.LANCZOS)
        out = io.BytesIO()
        thumb.save(out, format="PNG")
        return out.getvalue()


def _validate_image_or_raise(filename: str, content: bytes, max_mb: int) -> None:
    if len(content) > int(max_mb) * 1024 * 1024:
        raise ImageTooLargeError(max_mb)
    ext = os.path.splitext((filename or "").lower())[1]
    if ext not in ALLOWED_EXTENSIONS:
        raise UnsupportedImageFormatError()
    # Attempt to open with Pillow to validate image
    try:
        with Image.open(io.BytesIO(content)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        raise CorruptedImageError()


def _guess_content_type(filename: str) -> str:
    ext = os.path.splitext(filename.lower())[1]
    return {
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".png": "image/png",
        ".gif": "image/gif",
        ".webp": "image/webp",
    }.get(ext, "application/octet-stream")
