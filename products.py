import logging
from typing import Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from auth import Identity, require_admin
from database import create_document, get_db, get_documents, now, serialize_doc, to_object_id
from schemas import Product, Season, ShoeType

logger = logging.getLogger(__name__)

router = APIRouter()


class ProductIn(BaseModel):
    name: str
    description: Optional[str] = None
    image: Optional[str] = None
    sizes: List[Union[int, float]] = Field(default_factory=list)
    type: ShoeType
    season: Season


# fields an update may set to null
CLEARABLE_FIELDS = {"description", "image"}


class ProductUpdate(BaseModel):
    # catalog is fixed at creation; type/season in the body are ignored
    name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    sizes: Optional[List[Union[int, float]]] = None


def expand_catalog(product: dict, catalogs_by_id: Dict[str, dict]) -> dict:
    doc = serialize_doc(product)
    catalog = catalogs_by_id.get(product.get("catalog"))
    doc["catalog"] = serialize_doc(catalog) if catalog else None
    return doc


def populate_product(db: Database, product: dict) -> dict:
    oid = to_object_id(product.get("catalog"))
    catalog = db["catalog"].find_one({"_id": oid}) if oid is not None else None
    return expand_catalog(product, {product["catalog"]: catalog} if catalog else {})


def _find_product(db: Database, product_id: str) -> dict:
    oid = to_object_id(product_id)
    product = db["product"].find_one({"_id": oid}) if oid is not None else None
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("")
def list_products(db: Database = Depends(get_db)):
    catalogs_by_id = {str(c["_id"]): c for c in get_documents(db, "catalog")}
    return [expand_catalog(p, catalogs_by_id) for p in get_documents(db, "product")]


@router.get("/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    return populate_product(db, _find_product(db, product_id))


@router.post("", status_code=201)
def create_product(
    payload: ProductIn,
    user: Identity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    catalog = db["catalog"].find_one({"type": payload.type, "season": payload.season})
    if not catalog:
        raise HTTPException(status_code=400, detail="Catalog not found")

    product = Product(
        name=payload.name,
        description=payload.description,
        image=payload.image,
        sizes=payload.sizes,
        catalog=str(catalog["_id"]),
        created_by=user.id,
    )
    product_id = create_document(db, "product", product)
    try:
        db["catalog"].update_one(
            {"_id": catalog["_id"]},
            {"$push": {"products": str(product_id)}, "$set": {"updated_at": now()}},
        )
    except PyMongoError:
        logger.error("Linking product %s to catalog %s failed, removing product", product_id, catalog["_id"])
        db["product"].delete_one({"_id": product_id})
        raise

    logger.info("Product %s created in catalog %s", product.name, catalog.get("title"))
    return populate_product(db, db["product"].find_one({"_id": product_id}))


@router.put("/{product_id}")
def update_product(
    product_id: str,
    payload: ProductUpdate,
    _: Identity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    existing = _find_product(db, product_id)
    changes = {
        k: v for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k in CLEARABLE_FIELDS
    }
    changes["updated_at"] = now()
    updated = db["product"].find_one_and_update(
        {"_id": existing["_id"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Product not found")
    return populate_product(db, updated)


@router.delete("/{product_id}")
def delete_product(
    product_id: str,
    _: Identity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    oid = to_object_id(product_id)
    deleted = db["product"].find_one_and_delete({"_id": oid}) if oid is not None else None
    if not deleted:
        raise HTTPException(status_code=404, detail="Product not found")

    catalog_oid = to_object_id(deleted.get("catalog"))
    result = db["catalog"].update_one(
        {"_id": catalog_oid},
        {"$pull": {"products": str(deleted["_id"])}, "$set": {"updated_at": now()}},
    )
    if result.matched_count == 0:
        logger.warning("Product %s referenced missing catalog %s", product_id, deleted.get("catalog"))
    logger.info("Product %s deleted", product_id)
    return {"message": "Deleted"}
