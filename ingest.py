"""Image ingestion: downloads, uploads and storing new catalog records."""
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional
from urllib.parse import parse_qs, urlparse

import requests
from fastapi import HTTPException

import catalog
import config
from imaging import DecodeError, EmptyFrameError, decode_first_frame, generate_thumbnail
from keywords import keywords_for
from logger import setup_logger
from models import Image
from utils import store_path, strip_ext, thumb_path

log = setup_logger("ihost.ingest")


@dataclass
class StoreRequest:
    title: str = ""
    kind: str = ""
    source_url: str = ""
    submitter: str = ""
    is_clean: bool = False
    keywords: str = ""
    collection_name: str = ""
    local_path: Optional[Path] = None


def _temp_file(prefix: str, suffix: str = ""):
    config.TMP_FOLDER.mkdir(parents=True, exist_ok=True)
    return tempfile.NamedTemporaryFile(
        dir=config.TMP_FOLDER, prefix=prefix, suffix=suffix, delete=False
    )


def _discard(path: Optional[Path]) -> None:
    if path is not None and path.exists():
        path.unlink()


def save_upload(store: StoreRequest, filename: str, stream: BinaryIO) -> None:
    """Copy an uploaded file into the temp folder."""
    store.source_url = "file://" + filename
    with _temp_file("up-", Path(filename).suffix) as f:
        shutil.copyfileobj(stream, f)
    store.local_path = Path(f.name)


def download_image_for(store: StoreRequest) -> None:
    """Resolve `store.source_url` into a video reference or a local temp file."""
    url = urlparse(store.source_url)
    if url.scheme not in ("http", "https"):
        raise HTTPException(400, "URL must be http or https")

    if url.netloc == "www.youtube.com":
        if url.path != "/watch":
            raise HTTPException(400, "Unrecognized YouTube URL form.")
        video_id = parse_qs(url.query).get("v", [""])[0]
        if not video_id:
            raise HTTPException(400, "YouTube URL is missing the video id")
        store.kind = "youtube"
        store.local_path = None
        store.source_url = video_id
        return

    if url.netloc == "i.imgur.com" and Path(url.path).suffix == ".gifv":
        store.kind = "imgur-gifv"
        store.local_path = None
        store.source_url = strip_ext(url.path)
        return

    log.info("Downloading %s", store.source_url)
    f = _temp_file("dl-")
    store.local_path = Path(f.name)
    try:
        with f, requests.get(store.source_url, stream=True, timeout=config.DOWNLOAD_TIMEOUT) as rsp:
            rsp.raise_for_status()
            for chunk in rsp.iter_content(chunk_size=64 * 1024):
                f.write(chunk)
    except requests.RequestException as e:
        _discard(store.local_path)
        store.local_path = None
        log.warning("Download of %s failed: %s", store.source_url, e)
        raise HTTPException(502, f"Could not download image: {e}")


def store_image(store: StoreRequest) -> int:
    """Create the catalog record, move the file into the store and make its thumbnail."""
    if not store.title:
        _discard(store.local_path)
        raise HTTPException(400, "Missing title!")

    img = Image(
        kind=store.kind,
        title=store.title,
        source_url=store.source_url,
        collection_name=store.collection_name,
        submitter=store.submitter,
        is_clean=store.is_clean,
        keywords=keywords_for(store.keywords, store.title),
    )

    if store.local_path is None:
        img.kind = img.kind or "gif"
        return catalog.create(img)

    try:
        first_image, img.kind = decode_first_frame(store.local_path.read_bytes())
    except (DecodeError, EmptyFrameError) as e:
        _discard(store.local_path)
        log.warning("Rejected %s: %s", store.source_url, e)
        raise HTTPException(400, str(e))

    image_id = catalog.create(img)

    config.STORE_FOLDER.mkdir(parents=True, exist_ok=True)
    os.replace(store.local_path, store_path(image_id, img.kind))

    generate_thumbnail(first_image, img.kind, thumb_path(image_id, img.kind))
    return image_id
