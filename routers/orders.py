"""
Order placement and administration.

Placing an order touches three collections: the order is inserted, its id is
pushed onto the buyer's ``orders`` list and every product's stock is
decremented. Deleting an order undoes the last two. These are separate writes
with no transaction and no rollback, so a failure part way through leaves the
collections disagreeing. The stock check and the decrement are also not
atomic: two concurrent orders can both pass the check and oversell.
"""
import logging
from typing import List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_db, get_documents, now, serialize_doc, to_object_id
from schemas import ORDER_STATUSES, Order as OrderSchema, OrderItem, ShippingLocation
from security import get_current_user, require_roles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])


class ShippingLocationBody(BaseModel):
    city: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None


class OrderItemBody(BaseModel):
    product_id: Optional[str] = None
    name: Optional[str] = None
    quantity: Optional[int] = None
    price: Optional[float] = None


class OrderCreateBody(BaseModel):
    shipping_location: Optional[ShippingLocationBody] = None
    items: Optional[List[OrderItemBody]] = None
    total_amount: Optional[float] = None


class OrderStatusBody(BaseModel):
    status: Optional[str] = None


def validate_order(body: OrderCreateBody, db: Database) -> None:
    """Raise 400 unless the order can be placed against current stock."""
    loc = body.shipping_location
    if not loc or not all(v and v.strip() for v in (loc.city, loc.state, loc.zipcode)):
        raise HTTPException(status_code=400, detail="Complete shipping address required")

    if not body.items:
        raise HTTPException(status_code=400, detail="Order must contain at least one item")

    requested = {}
    for item in body.items:
        if not item.product_id or item.quantity is None or item.quantity <= 0:
            raise HTTPException(status_code=400, detail="Invalid item format")
        try:
            oid = ObjectId(item.product_id)
        except InvalidId:
            raise HTTPException(status_code=400, detail=f"Product {item.product_id} not found")
        product = db["product"].find_one({"_id": oid}, {"name": 1, "stock": 1})
        if not product:
            raise HTTPException(status_code=400, detail=f"Product {item.product_id} not found")
        # Repeated lines for one product draw on the same stock.
        requested[oid] = requested.get(oid, 0) + item.quantity
        if product.get("stock", 0) < requested[oid]:
            raise HTTPException(status_code=400, detail=f"Insufficient stock for {product['name']}")

    # Trusted as sent; not reconciled with the item prices.
    if body.total_amount is None or not body.total_amount > 0:
        raise HTTPException(status_code=400, detail="Invalid total amount")


def expand_orders(db: Database, orders: List[dict]) -> List[dict]:
    """Serialize orders with the buyer document inlined, minus the password hash."""
    user_ids = list({o["user"] for o in orders if o.get("user")})
    users = {}
    if user_ids:
        for u in db["user"].find({"_id": {"$in": user_ids}}, {"password_hash": 0}):
            users[u["_id"]] = serialize_doc(u)
    out = []
    for order in orders:
        doc = serialize_doc(order)
        # Orders can outlive their buyer.
        doc["user"] = users.get(order.get("user"))
        out.append(doc)
    return out


@router.get("/user")
def my_orders(user=Depends(get_current_user), db: Database = Depends(get_db)):
    orders = get_documents(
        db, "order", {"user": to_object_id(user["id"], "User")}, sort=[("order_date", -1)]
    )
    return expand_orders(db, orders)


@router.get("")
def all_orders(user=Depends(require_roles("admin")), db: Database = Depends(get_db)):
    orders = get_documents(db, "order", sort=[("order_date", -1)])
    return expand_orders(db, orders)


@router.post("", status_code=201)
def create_order(body: OrderCreateBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    validate_order(body, db)
    user_oid = to_object_id(user["id"], "User")

    loc = body.shipping_location
    order = OrderSchema(
        items=[
            OrderItem(product_id=i.product_id, name=i.name, quantity=i.quantity, price=i.price)
            for i in body.items
        ],
        shipping_location=ShippingLocation(
            city=loc.city.strip(), state=loc.state.strip(), zipcode=loc.zipcode.strip()
        ),
        user=user_oid,
        status="pending",
        total_amount=body.total_amount,
        order_date=now(),
    )
    order_id = create_document(db, "order", order)
    order_oid = ObjectId(order_id)

    db["user"].update_one({"_id": user_oid}, {"$push": {"orders": order_oid}})
    for item in body.items:
        db["product"].update_one({"_id": ObjectId(item.product_id)}, {"$inc": {"stock": -item.quantity}})

    logger.info("Order %s placed by %s with %d item(s)", order_id, user["id"], len(body.items))
    created = db["order"].find_one({"_id": order_oid})
    return {"message": "Order created successfully", "order": serialize_doc(created)}


@router.put("/{order_id}")
def update_order_status(
    order_id: str,
    body: OrderStatusBody,
    user=Depends(require_roles("admin")),
    db: Database = Depends(get_db),
):
    # Any status may follow any other.
    if body.status not in ORDER_STATUSES:
        raise HTTPException(status_code=400, detail=f"Status must be one of: {', '.join(ORDER_STATUSES)}")

    order = db["order"].find_one_and_update(
        {"_id": to_object_id(order_id, "Order")},
        {"$set": {"status": body.status, "updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    logger.info("Order %s set to %s by %s", order_id, body.status, user["id"])
    return {"message": "Order updated successfully", "order": expand_orders(db, [order])[0]}


@router.delete("/{order_id}")
def delete_order(order_id: str, user=Depends(require_roles("admin")), db: Database = Depends(get_db)):
    order = db["order"].find_one_and_delete({"_id": to_object_id(order_id, "Order")})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    # Restore from the snapshot quantities, not from any live lookup.
    for item in order.get("items", []):
        try:
            pid = ObjectId(item["product_id"])
        except (InvalidId, KeyError):
            logger.warning("Order %s has an unrestorable item %r", order_id, item)
            continue
        db["product"].update_one({"_id": pid}, {"$inc": {"stock": item["quantity"]}})

    db["user"].update_one({"_id": order["user"]}, {"$pull": {"orders": order["_id"]}})
    logger.info("Order %s deleted by %s", order_id, user["id"])
    return {"message": "Order deleted successfully", "orderId": order_id}
