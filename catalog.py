"""Catalog store: CRUD and listing of image records."""
from enum import Enum
from typing import List, Optional

from sqlmodel import col, select

from database import get_session
from keywords import title_to_keywords
from logger import setup_logger
from models import Image
from search import keyword_match

log = setup_logger("ihost.catalog")

# Collection name that lists images across every collection.
ALL_COLLECTIONS = "all"


class OrderBy(str, Enum):
    TITLE_ASC = "title_asc"
    TITLE_DESC = "title_desc"
    ID_ASC = "id_asc"
    ID_DESC = "id_desc"


def _order_clause(order_by: OrderBy):
    if order_by == OrderBy.TITLE_ASC:
        return col(Image.title).collate("NOCASE").asc()
    if order_by == OrderBy.TITLE_DESC:
        return col(Image.title).collate("NOCASE").desc()
    if order_by == OrderBy.ID_ASC:
        return col(Image.id).asc()
    return col(Image.id).desc()


def list_candidates(
    collection_name: str = ALL_COLLECTIONS,
    include_base: bool = True,
    order_by: OrderBy = OrderBy.ID_DESC,
) -> List[Image]:
    """List images of a collection.

    `include_base` also pulls in images of the base (unnamed) collection.
    """
    stmt = select(Image)
    if collection_name != ALL_COLLECTIONS:
        if include_base:
            stmt = stmt.where(
                (Image.collection_name == collection_name) | (Image.collection_name == "")
            )
        else:
            stmt = stmt.where(Image.collection_name == collection_name)
    stmt = stmt.order_by(_order_clause(order_by))

    with get_session() as s:
        return list(s.exec(stmt).all())


def search(
    query: List[str],
    collection_name: str = ALL_COLLECTIONS,
    include_base: bool = True,
    order_by: OrderBy = OrderBy.ID_DESC,
) -> List[Image]:
    """Pull the whole candidate list and keep the best keyword matches."""
    candidates = list_candidates(collection_name, include_base, order_by)
    return keyword_match(query, candidates)


def get_by_id(image_id: int) -> Optional[Image]:
    with get_session() as s:
        return s.get(Image, image_id)


def create(img: Image) -> int:
    """Insert a new record and return its ID."""
    img.id = None
    with get_session() as s:
        s.add(img)
        s.commit()
        s.refresh(img)
    log.info("Created image %d (%s) %r", img.id, img.kind, img.title)
    return img.id


def update(img: Image) -> None:
    with get_session() as s:
        s.merge(img)
        s.commit()


def delete(image_id: int) -> bool:
    """Delete a record; returns False if it did not exist."""
    with get_session() as s:
        img = s.get(Image, image_id)
        if not img:
            return False
        s.delete(img)
        s.commit()
    log.info("Deleted image %d", image_id)
    return True


def resolve_redirects(img: Image) -> Optional[Image]:
    """Follow the redirect chain of `img`; None if a target is missing."""
    seen = {img.id}
    while img.redirect_to_id is not None:
        if img.redirect_to_id in seen:
            log.warning("Redirect cycle at image %d", img.id)
            break
        seen.add(img.redirect_to_id)
        target = get_by_id(img.redirect_to_id)
        if target is None:
            return None
        img = target
    return img


def clone(img: Image) -> Image:
    """Unsaved copy of a record's catalog fields."""
    return Image(
        kind=img.kind,
        title=img.title,
        source_url=img.source_url,
        collection_name=img.collection_name,
        submitter=img.submitter,
        redirect_to_id=img.redirect_to_id,
        is_hidden=img.is_hidden,
        is_clean=img.is_clean,
        keywords=img.keywords,
    )


def backfill_keywords() -> int:
    """Derive keywords from titles for records that have none. Returns the count."""
    updated = 0
    with get_session() as s:
        for img in s.exec(select(Image).where(Image.keywords == "")).all():
            img.keywords = title_to_keywords(img.title)
            updated += 1
        s.commit()
    log.info("Backfilled keywords for %d images", updated)
    return updated
