import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import config
from database import get_db, get_documents, now, serialize_doc, to_object_id
from schemas import Address, PaymentInfo
from security import get_current_user, hash_password, require_roles, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])

HIDDEN = {"password_hash": 0}


class ProfileUpdateBody(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    profile_image: Optional[str] = None
    payment: Optional[PaymentInfo] = None


class PasswordBody(BaseModel):
    old_password: Optional[str] = None
    new_password: Optional[str] = None


class AddressBody(BaseModel):
    city: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None


def address_fields(body: AddressBody) -> dict:
    fields = {
        "city": (body.city or "").strip(),
        "state": (body.state or "").strip(),
        "zipcode": (body.zipcode or "").strip(),
    }
    if not all(fields.values()):
        raise HTTPException(status_code=400, detail="City, state, and zipcode are required")
    return fields


def update_self(db: Database, user_id: str, update: dict, match: Optional[dict] = None) -> Optional[dict]:
    """Apply ``update`` to the caller's document and return it serialized."""
    update.setdefault("$set", {})["updated_at"] = now()
    filt = {"_id": to_object_id(user_id, "User")}
    if match:
        filt.update(match)
    user = db["user"].find_one_and_update(
        filt,
        update,
        projection=HIDDEN,
        return_document=ReturnDocument.AFTER,
    )
    return serialize_doc(user)


@router.get("/profile")
def get_profile(user=Depends(get_current_user), db: Database = Depends(get_db)):
    doc = db["user"].find_one({"_id": to_object_id(user["id"], "User")}, HIDDEN)
    if not doc:
        raise HTTPException(status_code=404, detail="User not found")
    orders = get_documents(db, "order", {"_id": {"$in": doc.get("orders", [])}}, sort=[("order_date", -1)])
    profile = serialize_doc(doc)
    profile["orders"] = [serialize_doc(o) for o in orders]
    return profile


@router.put("/profile")
def update_profile(body: ProfileUpdateBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    changes = {}
    if body.name is not None:
        name = body.name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Name cannot be empty")
        changes["name"] = name
    if body.email is not None:
        email = body.email.lower()
        taken = db["user"].find_one({"email": email, "_id": {"$ne": to_object_id(user["id"], "User")}})
        if taken:
            raise HTTPException(status_code=409, detail="Email already in use")
        changes["email"] = email
    if body.profile_image is not None:
        changes["profile_image"] = body.profile_image
    if body.payment is not None:
        # Stored as given; nothing is ever charged.
        changes["payment"] = body.payment.model_dump()

    try:
        doc = update_self(db, user["id"], {"$set": changes})
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Email already in use")
    if not doc:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "Profile updated successfully", "user": doc}


@router.put("/password")
def change_password(body: PasswordBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    if not body.old_password or not body.new_password:
        raise HTTPException(status_code=400, detail="Old and new passwords are required")
    if len(body.new_password) < config.MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail="New password must be at least 6 characters")

    oid = to_object_id(user["id"], "User")
    doc = db["user"].find_one({"_id": oid}, {"password_hash": 1})
    if not doc:
        raise HTTPException(status_code=404, detail="User not found")
    if not verify_password(body.old_password, doc.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Old password is incorrect")

    db["user"].update_one(
        {"_id": oid},
        {"$set": {"password_hash": hash_password(body.new_password), "updated_at": now()}},
    )
    logger.info("Password changed for user %s", user["id"])
    return {"message": "Password updated successfully"}


@router.post("/address")
def add_address(body: AddressBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    address = Address(**address_fields(body), created_at=now())
    doc = update_self(db, user["id"], {"$push": {"addresses": address.model_dump(by_alias=True)}})
    if not doc:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "Address added successfully", "user": doc}


@router.put("/address/{address_id}")
def update_address(
    address_id: str,
    body: AddressBody,
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
):
    fields = address_fields(body)
    doc = update_self(
        db,
        user["id"],
        {"$set": {f"addresses.$.{k}": v for k, v in fields.items()}},
        match={"addresses._id": to_object_id(address_id, "Address")},
    )
    if not doc:
        raise HTTPException(status_code=404, detail="Address not found")
    return {"message": "Address updated successfully", "user": doc}


@router.delete("/address/{address_id}")
def delete_address(address_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    doc = update_self(
        db, user["id"], {"$pull": {"addresses": {"_id": to_object_id(address_id, "Address")}}}
    )
    if not doc:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "Address deleted successfully", "user": doc}


@router.post("/wishlist/{product_id}")
def add_to_wishlist(product_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    doc = update_self(db, user["id"], {"$addToSet": {"wishlist": product_id}})
    if not doc:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "Added to wishlist", "user": doc}


@router.delete("/wishlist/{product_id}")
def remove_from_wishlist(product_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    doc = update_self(db, user["id"], {"$pull": {"wishlist": product_id}})
    if not doc:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "Removed from wishlist", "user": doc}


@router.get("")
def list_users(user=Depends(require_roles("admin")), db: Database = Depends(get_db)):
    return [serialize_doc(u) for u in get_documents(db, "user", projection=HIDDEN)]


@router.delete("/{user_id}")
def delete_user(user_id: str, user=Depends(require_roles("admin")), db: Database = Depends(get_db)):
    # Orders placed by this user are left in place, still pointing at the old id.
    res = db["user"].delete_one({"_id": to_object_id(user_id, "User")})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("User %s deleted by %s", user_id, user["id"])
    return {"message": "User deleted successfully", "userId": user_id}
