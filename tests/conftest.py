import io
import os
import shutil
import tempfile

import pytest

# Point all storage at a throwaway folder before any app module reads config.
_BASE = tempfile.mkdtemp(prefix="ihost-test-")
os.environ["IHOST_BASE_FOLDER"] = _BASE
os.environ["IHOST_DB_PATH"] = os.path.join(_BASE, "test.db")
os.environ["IHOST_LOG_DIR"] = os.path.join(_BASE, "logs")
os.environ["IHOST_XACCEL_IMAGE"] = ""
os.environ["IHOST_XACCEL_THUMB"] = ""

from PIL import Image as PILImage  # noqa: E402


def _make_image(fmt="JPEG", size=(400, 300), color=(200, 30, 30)):
    """Encoded bytes of a solid-color image."""
    buf = io.BytesIO()
    mode = "RGBA" if fmt == "PNG" and len(color) == 4 else "RGB"
    PILImage.new(mode, size, color).save(buf, format=fmt)
    return buf.getvalue()


def _make_gif(colors=((255, 0, 0), (0, 255, 0), (0, 0, 255)), size=(20, 10), durations=(100, 200, 300)):
    frames = [PILImage.new("RGB", size, c) for c in colors]
    buf = io.BytesIO()
    frames[0].save(
        buf,
        format="GIF",
        save_all=True,
        append_images=frames[1:],
        duration=list(durations),
        loop=0,
    )
    return buf.getvalue()


@pytest.fixture
def make_image():
    return _make_image


@pytest.fixture
def make_gif():
    return _make_gif


@pytest.fixture(autouse=True)
def fresh_storage():
    import config
    from database import reset_db

    reset_db()
    for folder in (config.STORE_FOLDER, config.THUMB_FOLDER, config.TMP_FOLDER):
        shutil.rmtree(folder, ignore_errors=True)
    config.ensure_folders()
    yield


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from app import app

    return TestClient(app)


@pytest.fixture
def upload(client):
    """Upload bytes through the HTML form and return the public ID."""

    def _upload(data, filename="panda.jpg", title="Red Panda", collection_name="", **fields):
        url = f"/col/upload/{collection_name}" if collection_name else "/col/upload"
        rsp = client.post(
            url,
            data={"title": title, **fields},
            files={"file": (filename, data, "application/octet-stream")},
            follow_redirects=False,
        )
        assert rsp.status_code == 302, rsp.text
        return rsp.headers["location"].rsplit("/", 1)[1]

    return _upload
