import logging
from typing import Dict, Iterable, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import Identity, require_admin
from database import create_document, get_db, get_documents, now, serialize_doc, to_object_id
from schemas import Catalog, Season, ShoeType, catalog_title

logger = logging.getLogger(__name__)

router = APIRouter()


class CatalogIn(BaseModel):
    type: ShoeType
    season: Season


class CatalogUpdate(BaseModel):
    type: Optional[ShoeType] = None
    season: Optional[Season] = None
    title: Optional[str] = None


def load_products(db: Database, ids: Optional[Iterable[str]] = None) -> Dict[str, dict]:
    """Map product id -> product document, for all products or the given ids."""
    if ids is None:
        cursor = db["product"].find()
    else:
        object_ids = [oid for oid in (to_object_id(i) for i in ids) if oid is not None]
        cursor = db["product"].find({"_id": {"$in": object_ids}})
    return {str(p["_id"]): p for p in cursor}


def expand_products(catalog: dict, products_by_id: Dict[str, dict]) -> dict:
    """Serialize a catalog with its product ids replaced by product documents.

    Ids that no longer resolve to a product are dropped, keeping list order.
    """
    doc = serialize_doc(catalog)
    doc["products"] = [
        serialize_doc(products_by_id[pid])
        for pid in catalog.get("products", [])
        if pid in products_by_id
    ]
    return doc


def populate_catalog(db: Database, catalog: dict) -> dict:
    return expand_products(catalog, load_products(db, catalog.get("products", [])))


def _find_catalog(db: Database, catalog_id: str) -> dict:
    oid = to_object_id(catalog_id)
    catalog = db["catalog"].find_one({"_id": oid}) if oid is not None else None
    if not catalog:
        raise HTTPException(status_code=404, detail="Catalog not found")
    return catalog


@router.get("")
def list_catalogs(db: Database = Depends(get_db)):
    products_by_id = load_products(db)
    return [expand_products(c, products_by_id) for c in get_documents(db, "catalog")]


@router.get("/filter")
def filter_catalogs(
    type: Optional[str] = None,
    season: Optional[str] = None,
    db: Database = Depends(get_db),
):
    query = {}
    if type:
        query["type"] = type
    if season:
        query["season"] = season
    products_by_id = load_products(db)
    return [expand_products(c, products_by_id) for c in get_documents(db, "catalog", query)]


@router.get("/nested")
def nested_catalogs(db: Database = Depends(get_db)):
    products_by_id = load_products(db)
    nested: Dict[str, Dict[str, list]] = {}
    for catalog in get_documents(db, "catalog"):
        doc = expand_products(catalog, products_by_id)
        nested.setdefault(doc["type"], {}).setdefault(doc["season"], []).extend(doc["products"])
    return nested


@router.get("/{catalog_id}")
def get_catalog(catalog_id: str, db: Database = Depends(get_db)):
    return populate_catalog(db, _find_catalog(db, catalog_id))


@router.post("", status_code=201)
def create_catalog(
    payload: CatalogIn,
    user: Identity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    if db["catalog"].find_one({"type": payload.type, "season": payload.season}):
        raise HTTPException(status_code=400, detail="Catalog already exists")

    catalog = Catalog(
        type=payload.type,
        season=payload.season,
        title=catalog_title(payload.type, payload.season),
        created_by=user.id,
    )
    try:
        catalog_id = create_document(db, "catalog", catalog)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Catalog already exists")

    logger.info("Catalog %s created by %s", catalog.title, user.id)
    return serialize_doc(db["catalog"].find_one({"_id": catalog_id}))


@router.put("/{catalog_id}")
def update_catalog(
    catalog_id: str,
    payload: CatalogUpdate,
    _: Identity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    existing = _find_catalog(db, catalog_id)
    changes = {
        k: v for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k == "title"
    }

    shoe_type = changes.get("type", existing["type"])
    season = changes.get("season", existing["season"])
    clash = db["catalog"].find_one(
        {"type": shoe_type, "season": season, "_id": {"$ne": existing["_id"]}}
    )
    if clash:
        raise HTTPException(status_code=400, detail="Catalog already exists")

    changes["updated_at"] = now()
    try:
        updated = db["catalog"].find_one_and_update(
            {"_id": existing["_id"]},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Catalog already exists")
    if not updated:
        raise HTTPException(status_code=404, detail="Catalog not found")
    return populate_catalog(db, updated)


@router.delete("/{catalog_id}")
def delete_catalog(
    catalog_id: str,
    _: Identity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    oid = to_object_id(catalog_id)
    deleted = db["catalog"].find_one_and_delete({"_id": oid}) if oid is not None else None
    if not deleted:
        raise HTTPException(status_code=404, detail="Catalog not found")
    logger.info("Catalog %s deleted", catalog_id)
    return {"message": "Catalog deleted"}
