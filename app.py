"""
Image Host – personal image rehosting service (FastAPI + SQLite)

Quick start
-----------
1) python -m venv .venv && source .venv/bin/activate
2) pip install -e .
3) python app.py  # auto-writes templates/static and DB
4) Open http://localhost:8000 → Add an image by URL or upload

Notes
-----
• Images, thumbnails and the database live under IHOST_BASE_FOLDER (./data by default).
• Short URLs: /b/<id> black viewer, /w/<id> white, /g/<id> gray, /t/<id>.ext thumbnail.
• Search: /?q=red+panda ranks by phrase proximity over titles/keywords.
• JSON API under /api/v1/ (list, only, search, info, add, update, delete, crop).
"""

import argparse

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

import config
from catalog import backfill_keywords
from database import init_db
from routes import (
    add_form,
    add_from_url,
    admin,
    admin_edit,
    admin_list,
    admin_update,
    api_add,
    api_crop,
    api_delete,
    api_info,
    api_list,
    api_only,
    api_search,
    api_update,
    col_list,
    col_only,
    favicon,
    index,
    original,
    thumbnail,
    upload,
    view_black,
    view_gray,
    view_url,
    view_white,
    view_youtube,
)
from templates_static import ensure_assets

# Create FastAPI app
app = FastAPI(title="Image Host")

# Ensure templates and static files exist
ensure_assets()

# Mount static files
app.mount("/static", StaticFiles(directory=str(config.STATIC_DIR)), name="static")

# Initialize database and storage folders
init_db()

# Pages
app.get("/favicon.ico")(favicon)
app.get("/")(index)
app.get("/col/list/{collection_name}")(col_list)
app.get("/col/only/{collection_name}")(col_only)
app.get("/col/add")(add_form)
app.get("/col/add/{collection_name}")(add_form)
app.post("/col/add")(add_from_url)
app.post("/col/add/{collection_name}")(add_from_url)
app.post("/col/upload")(upload)
app.post("/col/upload/{collection_name}")(upload)

# Admin
app.get("/admin")(admin)
app.get("/admin/")(admin)
app.get("/admin/list/{collection_name}")(admin_list)
app.get("/admin/edit/{image_id}")(admin_edit)
app.post("/admin/update/{image_id}")(admin_update)

# Ad-hoc viewers
app.get("/view/yt/{video_id}")(view_youtube)
app.get("/view/img/{imgurl:path}")(view_url)

# API endpoints
app.get("/api/v1/list/{collection_name}")(api_list)
app.get("/api/v1/only/{collection_name}")(api_only)
app.get("/api/v1/search/{collection_name}")(api_search)
app.get("/api/v1/info/{image_id}")(api_info)
app.post("/api/v1/add/{collection_name}")(api_add)
app.post("/api/v1/update/{image_id}")(api_update)
app.post("/api/v1/delete/{image_id}")(api_delete)
app.post("/api/v1/crop/{image_id}")(api_crop)

# Short URLs - MUST come last, `/{name}` matches anything
app.get("/b/{name}")(view_black)
app.get("/w/{name}")(view_white)
app.get("/g/{name}")(view_gray)
app.get("/t/{name}")(thumbnail)
app.get("/{name}")(original)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Image Host server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    parser.add_argument(
        "--backfill-keywords",
        action="store_true",
        help="Derive keywords from titles for images without any, then exit",
    )
    args = parser.parse_args()

    if args.backfill_keywords:
        print(f"→ Updated keywords of {backfill_keywords()} images")
    else:
        print(f"→ Open http://{args.host}:{args.port}")
        import uvicorn

        uvicorn.run("app:app", host=args.host, port=args.port, reload=args.reload)
