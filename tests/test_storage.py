import asyncio
import re

import pytest

from app.errors import StorageFailure
from app.services.storage import LocalImageStorage, sanitize_filename, unique_name


def test_sanitize_filename_strips_paths_and_odd_characters():
    assert sanitize_filename("../../etc/passwd") == "passwd"
    assert sanitize_filename("clock tower (1).JPG") == "clock_tower__1_.JPG"
    assert sanitize_filename("") == "image"


def test_unique_name_keeps_extension():
    assert re.fullmatch(r"geo_\d{13}\.jpg", unique_name("geo", "Clock.JPG"))
    assert re.fullmatch(r"7_\d{13}", unique_name("7", "noext"))


def test_local_storage_put_and_delete(tmp_path):
    storage = LocalImageStorage(str(tmp_path), "/media/")

    url = asyncio.run(storage.put("avatars", "7_1700000000000.png", b"png-bytes", "image/png"))

    assert url == "/media/avatars/7_1700000000000.png"
    stored = tmp_path / "avatars" / "7_1700000000000.png"
    assert stored.read_bytes() == b"png-bytes"

    asyncio.run(storage.delete_url(url))
    assert not stored.exists()


def test_local_storage_ignores_foreign_urls(tmp_path):
    storage = LocalImageStorage(str(tmp_path / "images"), "/media")
    keep = tmp_path / "keep.png"
    keep.write_bytes(b"x")

    asyncio.run(storage.delete_url("https://elsewhere.example.com/keep.png"))
    asyncio.run(storage.delete_url("/media/../keep.png"))

    assert keep.exists()


def test_local_storage_reports_write_failures(tmp_path):
    storage = LocalImageStorage(str(tmp_path), "/media")
    # a directory where the file should go makes the write fail
    (tmp_path / "avatars" / "taken.png").mkdir(parents=True)

    with pytest.raises(StorageFailure):
        asyncio.run(storage.put("avatars", "taken.png", b"x"))
