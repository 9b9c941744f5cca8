import io
import os

import pytest
from PIL import Image

from conftest import png_bytes
from waydown.config import settings
from waydown.exceptions import CorruptedImageError, ImageTooLargeError, UnsupportedImageFormatError
from waydown.services.storage import StorageService, _key_from_url, _validate_image_or_raise, resize_square


class TestValidation:
    def test_accepts_png(self):
        _validate_image_or_raise("photo.PNG", png_bytes(), 1)

    def test_too_large(self):
        with pytest.raises(ImageTooLargeError) as exc:
            _validate_image_or_raise("photo.png", png_bytes(), 0)
        assert exc.value.status_code == 413

    def test_bad_extension(self):
        with pytest.raises(UnsupportedImageFormatError):
            _validate_image_or_raise("notes.txt", png_bytes(), 1)

    def test_corrupted(self):
        with pytest.raises(CorruptedImageError):
            _validate_image_or_raise("photo.jpg", b"\x89PNG not really", 1)


def test_resize_square():
    out = resize_square(png_bytes(size=(300, 120)), 50)
    with Image.open(io.BytesIO(out)) as img:
        assert img.size == (50, 50)
        assert img.format == "PNG"


class TestKeys:
    def test_local_url(self):
        assert _key_from_url("http://localhost:3000/media/spots/1/a.png") == "spots/1/a.png"

    def test_public_base(self, monkeypatch):
        monkeypatch.setattr(settings, "s3_public_base_url", "https://cdn.example.com/")
        assert _key_from_url("https://cdn.example.com/posts/2/b.png?v=1") == "posts/2/b.png"

    def test_foreign_url(self):
        assert _key_from_url("https://elsewhere.example.com/b.png") is None


async def test_local_save_and_delete():
    url = await StorageService.save_post_image(77, "trip.png", png_bytes())
    assert url.startswith(settings.local_base_url)
    key = _key_from_url(url)
    assert key.startswith("posts/77/")
    path = os.path.join(settings.media_root, *key.split("/"))
    assert os.path.exists(path)

    await StorageService.delete_url(url)
    assert not os.path.exists(path)
