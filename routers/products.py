import json
import logging
import math
import re
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ValidationError
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_db, get_documents, now, serialize_doc, to_object_id
from schemas import Product as ProductSchema, Review
from security import get_current_user, require_roles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])


class ProductCreateBody(BaseModel):
    name: Optional[str] = None
    price: Optional[float] = None
    rating: Optional[float] = None
    description: Optional[str] = None
    images: Optional[List[str]] = None
    category: Optional[str] = None
    stock: Optional[int] = None


class ProductUpdateBody(ProductCreateBody):
    pass


class ReviewBody(BaseModel):
    rating: Optional[float] = None
    comment: Optional[str] = None


def clamp(value, low, high=None):
    value = max(low, value)
    if high is not None:
        value = min(high, value)
    return value


def check_price(price) -> None:
    if not math.isfinite(price) or price < 0:
        raise HTTPException(status_code=400, detail="Price must be a non-negative number")


def parse_review(idx: int, blob: str) -> dict:
    """Decode one stored review; unreadable entries become an anonymous placeholder."""
    try:
        data = json.loads(blob)
    except ValueError:
        data = None
    if not isinstance(data, dict):
        return {"id": idx, "user_name": "Anonymous", "rating": 0, "comment": blob}
    try:
        review = Review.model_validate(data)
    except ValidationError:
        # Readable but oddly typed; hand it back as stored.
        return {"id": idx, **data}
    return {"id": idx, **review.model_dump()}


def _substring(text: str) -> dict:
    return {"$regex": re.escape(text), "$options": "i"}


@router.get("")
def list_products(db: Database = Depends(get_db)):
    items = get_documents(db, "product")
    logger.debug("Listing %d products", len(items))
    return [serialize_doc(i) for i in items]


@router.get("/search/query")
def search_products(q: Optional[str] = None, db: Database = Depends(get_db)):
    if not q or not q.strip():
        raise HTTPException(status_code=400, detail="Search query required")
    pattern = _substring(q.strip())
    filt = {"$or": [{"name": pattern}, {"description": pattern}, {"category": pattern}]}
    return [serialize_doc(i) for i in get_documents(db, "product", filt)]


@router.get("/category/{category}")
def products_by_category(category: str, db: Database = Depends(get_db)):
    filt = {"category": _substring(category.strip().lower())}
    return [serialize_doc(i) for i in get_documents(db, "product", filt)]


@router.get("/{product_id}/reviews")
def get_reviews(product_id: str, db: Database = Depends(get_db)):
    product = db["product"].find_one({"_id": to_object_id(product_id, "Product")}, {"reviews": 1})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    reviews = [parse_review(idx, blob) for idx, blob in enumerate(product.get("reviews", []))]
    return {"reviews": reviews}


@router.post("/{product_id}/review", status_code=201)
@router.post("/{product_id}/reviews", status_code=201)
def submit_review(
    product_id: str,
    body: ReviewBody,
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if body.rating is None or not body.comment:
        raise HTTPException(status_code=400, detail="Rating and comment are required")
    if body.rating < 1 or body.rating > 5:
        raise HTTPException(status_code=400, detail="Rating must be between 1 and 5")
    comment = body.comment.strip()
    if not comment:
        raise HTTPException(status_code=400, detail="Comment cannot be empty")

    user_oid = to_object_id(user["id"], "User")
    purchased = db["order"].find_one({"user": user_oid, "items.product_id": product_id})
    if not purchased:
        raise HTTPException(status_code=403, detail="You can only review products you've purchased")

    oid = to_object_id(product_id, "Product")
    if not db["product"].find_one({"_id": oid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Product not found")
    author = db["user"].find_one({"_id": user_oid}, {"name": 1})
    if not author:
        raise HTTPException(status_code=404, detail="User not found")

    review = Review(
        user_name=author["name"],
        rating=body.rating,
        comment=comment,
        date=now().date().isoformat(),
        verified=True,
    )
    # The product's own rating is left alone; it is not derived from reviews.
    product = db["product"].find_one_and_update(
        {"_id": oid},
        {"$push": {"reviews": review.model_dump_json()}, "$set": {"updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    logger.info("Review added to product %s by user %s", product_id, user["id"])
    return {"message": "Review submitted successfully", "product": serialize_doc(product)}


@router.get("/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    item = db["product"].find_one({"_id": to_object_id(product_id, "Product")})
    if not item:
        raise HTTPException(status_code=404, detail="Product not found")
    return serialize_doc(item)


@router.post("", status_code=201)
def create_product(body: ProductCreateBody, user=Depends(require_roles("admin")), db: Database = Depends(get_db)):
    if body.name is None or body.price is None or not body.category:
        raise HTTPException(status_code=400, detail="Name, price, and category are required")
    name = body.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Name must be a non-empty string")
    check_price(body.price)

    product = ProductSchema(
        name=name,
        price=body.price,
        rating=clamp(body.rating or 0, 0, 5),
        description=(body.description or "").strip(),
        images=body.images or [],
        category=body.category.strip().lower(),
        stock=clamp(body.stock or 0, 0),
    )
    pid = create_document(db, "product", product)
    logger.info("Product %s created by %s", pid, user["id"])
    created = db["product"].find_one({"_id": to_object_id(pid)})
    return {"message": "Product created successfully", "product": serialize_doc(created)}


@router.put("/{product_id}")
def update_product(
    product_id: str,
    body: ProductUpdateBody,
    user=Depends(require_roles("admin")),
    db: Database = Depends(get_db),
):
    changes = body.model_dump(exclude_none=True)
    update = {}
    if "name" in changes:
        name = changes["name"].strip()
        if not name:
            raise HTTPException(status_code=400, detail="Name must be a non-empty string")
        update["name"] = name
    if "price" in changes:
        check_price(changes["price"])
        update["price"] = changes["price"]
    if "rating" in changes:
        update["rating"] = clamp(changes["rating"], 0, 5)
    if "description" in changes:
        update["description"] = changes["description"].strip()
    if "images" in changes:
        update["images"] = changes["images"]
    if "category" in changes:
        category = changes["category"].strip().lower()
        if not category:
            raise HTTPException(status_code=400, detail="Category cannot be empty")
        update["category"] = category
    if "stock" in changes:
        update["stock"] = clamp(changes["stock"], 0)
    update["updated_at"] = now()

    product = db["product"].find_one_and_update(
        {"_id": to_object_id(product_id, "Product")},
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"message": "Product updated successfully", "product": serialize_doc(product)}


@router.delete("/{product_id}")
def delete_product(product_id: str, user=Depends(require_roles("admin")), db: Database = Depends(get_db)):
    res = db["product"].delete_one({"_id": to_object_id(product_id, "Product")})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    logger.info("Product %s deleted by %s", product_id, user["id"])
    return {"message": "Product deleted successfully", "productId": product_id}
