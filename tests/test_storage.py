"""
Tests for media storage and image inspection.
"""
import os

import pytest

from app.core.config import settings
from app.utils.image_metadata import InvalidImage, extension_for, extract_image_metadata
from app.utils.storage import delete_media, save_media

from conftest import make_image


def test_local_save_and_delete():
    url = save_media("user_profiles/u1/profile-1.png", b"bytes", "image/png")
    assert url == "/uploads/user_profiles/u1/profile-1.png"
    path = os.path.join(settings.UPLOAD_DIR, "user_profiles", "u1", "profile-1.png")
    assert os.path.exists(path)

    assert delete_media(url) is True
    assert not os.path.exists(path)
    assert delete_media(url) is False


def test_delete_ignores_foreign_urls():
    assert delete_media("https://example.com/cat.png") is False
    assert delete_media(None) is False


@pytest.mark.parametrize("fmt,ext", [("PNG", ".png"), ("JPEG", ".jpg"), ("WEBP", ".webp")])
def test_image_metadata(fmt, ext):
    meta = extract_image_metadata(make_image(fmt, size=(12, 7)))
    assert (meta["width"], meta["height"], meta["format"]) == (12, 7, fmt)
    assert extension_for(meta) == ext


def test_rejects_non_images():
    with pytest.raises(InvalidImage):
        extract_image_metadata(b"")
    with pytest.raises(InvalidImage):
        extract_image_metadata(b"plain text")
    with pytest.raises(InvalidImage):
        extract_image_metadata(make_image("GIF"))
