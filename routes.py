"""FastAPI routes for Image Host."""
import hashlib
import json
from pathlib import Path
from typing import List, Optional

from fastapi import File, Form, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, RedirectResponse, Response
from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import BaseModel, ConfigDict, Field

import catalog
import config
from catalog import ALL_COLLECTIONS, OrderBy
from idcodec import public_id, row_id
from imaging import (
    EncodeError,
    ImagingError,
    crop_image,
    ensure_thumbnail,
    image_info,
    thumb_kind_for,
    write_atomic,
)
from ingest import StoreRequest, download_image_for, save_upload, store_image
from keywords import keywords_for, normalize_keywords
from logger import setup_logger
from models import Image
from utils import IMAGE_KINDS, image_kind_to, store_path, strip_ext, thumb_path

log = setup_logger("ihost.routes")

# Jinja environment
jinja_env = Environment(
    loader=FileSystemLoader(str(config.TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


def render(name: str, status_code: int = 200, headers: Optional[dict] = None, **ctx) -> HTMLResponse:
    """Render template with context."""
    template = jinja_env.get_template(name)
    ctx.setdefault("title", "Image Host")
    return HTMLResponse(template.render(**ctx), status_code=status_code, headers=headers)


# -------------------------------
# Helpers
# -------------------------------
def http_error_for(e: ImagingError) -> HTTPException:
    """Encoder failures are ours; everything else is a bad source or request."""
    if isinstance(e, EncodeError):
        return HTTPException(500, str(e))
    return HTTPException(400, str(e))


def order_from(request: Request) -> OrderBy:
    if "title" in request.query_params:
        return OrderBy.TITLE_ASC
    if "oldest" in request.query_params:
        return OrderBy.ID_ASC
    return OrderBy.ID_DESC


def client_addr(request: Request) -> str:
    ip = request.headers.get("X-Real-IP") or request.headers.get("X-Forwarded-For")
    if ip:
        return ip
    return request.client.host if request.client else ""


def image_view_model(img: Image) -> dict:
    """Project a record into the view model shared by templates and the JSON API."""
    base62id = public_id(img.id)
    kind = img.kind or "gif"
    model = {
        "id": img.id,
        "base62id": base62id,
        "title": img.title,
        "kind": kind,
        "submitter": img.submitter,
        "collectionName": img.collection_name,
        "sourceURL": img.source_url,
        "redirectToID": img.redirect_to_id,
        "isClean": img.is_clean,
        "keywords": img.keywords,
    }
    if kind == "youtube":
        model["imageURL"] = f"//www.youtube.com/embed/{img.source_url}"
        model["thumbURL"] = f"//i1.ytimg.com/vi/{img.source_url}/hqdefault.jpg"
    elif kind == "imgur-gifv":
        hash_ = strip_ext(img.source_url or "").lstrip("/")
        model["imageURL"] = f"//i.imgur.com/{hash_}.mp4"
        model["thumbURL"] = f"//i.imgur.com/{hash_}b.jpg"
    else:
        _, ext, thumb_ext = image_kind_to(kind)
        model["imageURL"] = f"/{base62id}{ext}"
        model["thumbURL"] = f"/t/{base62id}{thumb_ext}"
    return model


def project_model_list(images: List[Image]) -> List[dict]:
    return [image_view_model(img) for img in images if not img.is_hidden]


def etag_for(data) -> str:
    digest = hashlib.sha256(json.dumps(data, sort_keys=True, default=str).encode("utf-8"))
    return f'"{digest.hexdigest()}"'


def not_modified(request: Request, etag: str) -> bool:
    return request.headers.get("If-None-Match") == etag


def get_image_or_404(image_id: str) -> Image:
    try:
        rid = row_id(image_id)
    except ValueError:
        raise HTTPException(404, "Could not find image by ID")
    img = catalog.get_by_id(rid)
    if not img:
        raise HTTPException(404, "Could not find image by ID")
    return img


def lookup_served_image(name: str) -> Image:
    """Record for a `<base62id>[.ext]` path segment, following redirects."""
    img = catalog.resolve_redirects(get_image_or_404(strip_ext(name)))
    if img is None:
        raise HTTPException(404, "No record for ID exists")
    return img


def serve_file(path: Path, mime: str, xaccel_prefix: str) -> Response:
    if xaccel_prefix:
        # nginx serves the content
        redirect = xaccel_prefix.rstrip("/") + "/" + path.name
        return Response(status_code=200, media_type=mime, headers={"X-Accel-Redirect": redirect})
    return FileResponse(path, media_type=mime)


# -------------------------------
# HTML pages
# -------------------------------
def favicon():
    return Response(status_code=204)


def list_collection(request: Request, collection_name: str, include_base: bool, label: str = ""):
    keywords = normalize_keywords(request.query_params.getlist("q"))
    nsfw = bool(request.query_params.get("nsfw"))
    images = catalog.search(keywords, collection_name, include_base, order_from(request))

    etag = etag_for(
        {
            "collection": label,
            "list": [img.model_dump() for img in images],
            "showUnclean": nsfw,
        }
    )
    if not_modified(request, etag):
        return Response(status_code=304)

    return render(
        "list.html",
        headers={"ETag": etag},
        title=label or "Images",
        collection=label,
        images=project_model_list(images),
        show_unclean=nsfw,
        keywords=" ".join(keywords),
        search_url=request.url.path,
    )


def index(request: Request):
    return list_collection(request, ALL_COLLECTIONS, True)


def col_list(request: Request, collection_name: str):
    return list_collection(request, collection_name, True, collection_name)


def col_only(request: Request, collection_name: str):
    return list_collection(request, collection_name, False, collection_name)


def add_form(collection_name: str = ""):
    suffix = f"/{collection_name}" if collection_name else ""
    return render(
        "new.html",
        title="Add image",
        add_url=f"/col/add{suffix}",
        upload_url=f"/col/upload{suffix}",
    )


def add_from_url(
    request: Request,
    collection_name: str = "",
    url: str = Form(""),
    title: str = Form(""),
    keywords: str = Form(""),
    nsfw: str = Form(""),
):
    """Add a new image by downloading it from a URL."""
    if not url:
        raise HTTPException(400, "Missing required 'url' form value!")
    if not title:
        raise HTTPException(400, "Missing title!")

    store = StoreRequest(
        collection_name=collection_name,
        submitter=client_addr(request),
        title=title,
        source_url=url,
        keywords=keywords,
        is_clean=nsfw != "1",
    )
    download_image_for(store)
    image_id = store_image(store)
    return RedirectResponse(f"/b/{public_id(image_id)}", 302)


def upload(
    request: Request,
    collection_name: str = "",
    file: UploadFile = File(...),
    title: str = Form(""),
    keywords: str = Form(""),
    nsfw: str = Form(""),
):
    """Add a new image from a multipart upload."""
    store = StoreRequest(
        collection_name=collection_name,
        submitter=client_addr(request),
        title=title,
        keywords=keywords,
        is_clean=nsfw != "1",
    )
    save_upload(store, file.filename or "upload", file.file)
    image_id = store_image(store)
    return RedirectResponse(f"/b/{public_id(image_id)}", 302)


def admin(request: Request):
    return admin_list(request, ALL_COLLECTIONS)


def admin_list(request: Request, collection_name: str):
    images = catalog.list_candidates(collection_name, True, order_from(request))
    return render("admin.html", title="Admin", images=project_model_list(images))


def admin_edit(request: Request, image_id: str):
    img = get_image_or_404(image_id)
    return render(
        "view.html",
        title=img.title,
        bgcolor="gray",
        query=dict(request.query_params),
        image=image_view_model(img),
        is_admin=True,
    )


def admin_update(
    image_id: str,
    title: str = Form(""),
    keywords: str = Form(""),
    collection: str = Form(""),
    submitter: str = Form(""),
    nsfw: str = Form(""),
    delete: str = Form(""),
):
    img = get_image_or_404(image_id)
    if delete:
        catalog.delete(img.id)
        return RedirectResponse("/admin", 302)

    img.title = title
    img.keywords = keywords_for(keywords, title)
    img.collection_name = collection
    img.submitter = submitter
    img.is_clean = nsfw == ""
    catalog.update(img)
    return RedirectResponse(f"/admin/edit/{image_id}", 302)


def viewer(request: Request, name: str, bgcolor: str):
    img = lookup_served_image(name)
    return render(
        "view.html",
        title=img.title,
        bgcolor=bgcolor,
        query=dict(request.query_params),
        image=image_view_model(img),
    )


def view_black(request: Request, name: str):
    return viewer(request, name, "black")


def view_white(request: Request, name: str):
    return viewer(request, name, "white")


def view_gray(request: Request, name: str):
    return viewer(request, name, "gray")


def view_youtube(request: Request, video_id: str):
    """Player page for an arbitrary YouTube video id."""
    img = Image(id=0, kind="youtube", title=video_id, source_url=video_id, is_hidden=True)
    query = dict(request.query_params)
    query.setdefault("controls", "1")
    return render(
        "view.html",
        title=video_id,
        bgcolor="black",
        fill_screen=True,
        query=query,
        image=image_view_model(img),
    )


def view_url(request: Request, imgurl: str):
    """Viewer page for any image URL."""
    image = {
        "id": 0,
        "base62id": "_",
        "title": imgurl,
        "kind": "jpeg",
        "imageURL": imgurl,
        "thumbURL": "",
        "sourceURL": imgurl,
        "isClean": False,
        "keywords": "",
    }
    return render(
        "view.html", title=imgurl, bgcolor="black", query=dict(request.query_params), image=image
    )


# -------------------------------
# Files
# -------------------------------
def thumbnail(name: str):
    """Serve the thumbnail, generating it on first request."""
    img = lookup_served_image(name)
    if img.kind not in IMAGE_KINDS:
        raise HTTPException(404, "No thumbnail for this kind")

    src = store_path(img.id, img.kind)
    if not src.exists():
        raise HTTPException(404, "File missing on disk")

    dst = thumb_path(img.id, img.kind)
    try:
        ensure_thumbnail(src, dst)
    except ImagingError as e:
        log.error("Thumbnail for %d failed: %s", img.id, e)
        raise http_error_for(e)

    mime, _, _ = image_kind_to(thumb_kind_for(img.kind))
    return serve_file(dst, mime, config.XACCEL_THUMB_PREFIX)


def original(name: str):
    """Serve the stored image with its mime type."""
    img = lookup_served_image(name)
    if img.kind not in IMAGE_KINDS:
        raise HTTPException(404, "No stored file for this kind")

    src = store_path(img.id, img.kind)
    if not config.XACCEL_IMAGE_PREFIX and not src.exists():
        raise HTTPException(404, "File missing on disk")

    mime, _, _ = image_kind_to(img.kind)
    return serve_file(src, mime, config.XACCEL_IMAGE_PREFIX)


# -------------------------------
# JSON API
# -------------------------------
class ImageStoreBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: str = ""
    title: str = ""
    source_url: str = Field("", alias="sourceURL")
    submitter: str = ""
    is_clean: bool = Field(False, alias="isClean")
    keywords: str = ""


class ImageUpdateBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: Optional[str] = None
    title: Optional[str] = None
    source_url: Optional[str] = Field(None, alias="sourceURL")
    collection_name: Optional[str] = Field(None, alias="collectionName")
    submitter: Optional[str] = None
    redirect_to_id: Optional[int] = Field(None, alias="redirectToID")
    is_hidden: Optional[bool] = Field(None, alias="isHidden")
    is_clean: Optional[bool] = Field(None, alias="isClean")
    keywords: Optional[str] = None


NULLABLE_FIELDS = {"source_url", "redirect_to_id"}


class CropBody(BaseModel):
    left: int
    top: int
    right: int
    bottom: int


def api_list_result(request: Request, images: List[Image]):
    model = {"list": project_model_list(images)}
    etag = etag_for(model)
    if not_modified(request, etag):
        return Response(status_code=304)
    return JSONResponse(model, headers={"ETag": etag})


def api_list(request: Request, collection_name: str):
    """`/api/v1/list/all` returns all images across all collections."""
    images = catalog.list_candidates(collection_name, True, order_from(request))
    return api_list_result(request, images)


def api_only(request: Request, collection_name: str):
    images = catalog.list_candidates(collection_name, False, order_from(request))
    return api_list_result(request, images)


def api_search(request: Request, collection_name: str):
    keywords = normalize_keywords(request.query_params.getlist("q"))
    images = catalog.search(keywords, collection_name, True, order_from(request))
    return api_list_result(request, images)


def api_info(image_id: str):
    img = get_image_or_404(image_id)
    model = {
        "id": img.id,
        "base62id": public_id(img.id),
        "title": img.title,
        "keywords": img.keywords,
        "collectionName": img.collection_name,
        "submitter": img.submitter,
        "kind": img.kind or "gif",
        "sourceURL": img.source_url,
        "redirectToID": img.redirect_to_id,
    }

    if img.kind in IMAGE_KINDS:
        try:
            model["width"], model["height"], model["kind"] = image_info(store_path(img.id, img.kind))
        except FileNotFoundError:
            raise HTTPException(404, "File missing on disk")
        except ImagingError as e:
            raise HTTPException(500, str(e))
    return model


def api_add(collection_name: str, body: ImageStoreBody):
    store = StoreRequest(collection_name=collection_name, **body.model_dump())
    download_image_for(store)
    image_id = store_image(store)
    return {"id": image_id, "base62id": public_id(image_id)}


def api_update(image_id: str, body: ImageUpdateBody):
    img = get_image_or_404(image_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        if value is None and field not in NULLABLE_FIELDS:
            continue
        setattr(img, field, value)
    img.keywords = keywords_for(img.keywords, img.title)
    catalog.update(img)
    return {"success": True}


def api_delete(image_id: str):
    img = get_image_or_404(image_id)
    catalog.delete(img.id)
    return {"success": True}


def api_crop(image_id: str, body: CropBody):
    """Crop a stored image into a new catalog record."""
    img = get_image_or_404(image_id)
    if img.kind not in IMAGE_KINDS:
        raise HTTPException(400, "Only stored images can be cropped")

    try:
        data = store_path(img.id, img.kind).read_bytes()
    except FileNotFoundError:
        raise HTTPException(404, "File missing on disk")

    box = (body.left, body.top, body.right, body.bottom)
    try:
        cropped, kind = crop_image(data, box)
    except ImagingError as e:
        raise http_error_for(e)

    new_img = catalog.clone(img)
    new_img.kind = kind
    new_id = catalog.create(new_img)
    try:
        write_atomic(store_path(new_id, kind), cropped)
    except OSError:
        catalog.delete(new_id)
        raise
    log.info("Cropped image %d to %s as %d", img.id, box, new_id)

    return {
        "id": new_id,
        "base62id": public_id(new_id),
        "title": new_img.title,
        "collectionName": new_img.collection_name,
        "submitter": new_img.submitter,
        "kind": kind,
        "width": body.right - body.left,
        "height": body.bottom - body.top,
    }
