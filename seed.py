"""Load a demo catalog and a default admin account into an empty store."""
import logging
import os

from pymongo.database import Database

import database
from database import create_document
from schemas import Product as ProductSchema, User as UserSchema
from security import hash_password

logger = logging.getLogger(__name__)

ADMIN_EMAIL = "admin@shop.com"

DEMO_PRODUCTS = [
    {
        "name": "iPhone 15 Pro Max",
        "price": 2499,
        "rating": 4.8,
        "description": "Flagship smartphone with a titanium frame and a pro camera system.",
        "images": ["https://images.unsplash.com/photo-1592286927505-1def25115558"],
        "category": "phones",
        "stock": 25,
    },
    {
        "name": "Samsung Galaxy S24 Ultra",
        "price": 2199,
        "rating": 4.7,
        "description": "Android flagship with a built-in stylus and a bright display.",
        "images": ["https://images.unsplash.com/photo-1610945415295-d9bbf7e0b254"],
        "category": "phones",
        "stock": 30,
    },
    {
        "name": "MacBook Pro 16",
        "price": 3999,
        "rating": 4.9,
        "description": "Laptop for creative professionals.",
        "images": ["https://images.unsplash.com/photo-1517336714731-489689fd1ca8"],
        "category": "laptops",
        "stock": 15,
    },
    {
        "name": "Dell XPS 15",
        "price": 2499,
        "rating": 4.6,
        "description": "Ultrabook with an edge-to-edge display.",
        "images": ["https://images.unsplash.com/photo-1593642632823-8f785ba67e45"],
        "category": "laptops",
        "stock": 20,
    },
    {
        "name": "Sony WH-1000XM5",
        "price": 799,
        "rating": 4.8,
        "description": "Noise-cancelling wireless headphones.",
        "images": ["https://images.unsplash.com/photo-1505740420928-5e560c06d30e"],
        "category": "headsets",
        "stock": 40,
    },
    {
        "name": "Mechanical Gaming Keyboard RGB",
        "price": 349,
        "rating": 4.5,
        "description": "Hot-swappable switches and per-key lighting.",
        "images": ["https://images.unsplash.com/photo-1516382799247-87df95d790b5"],
        "category": "keyboards",
        "stock": 50,
    },
    {
        "name": "Logitech MX Master 3S",
        "price": 299,
        "rating": 4.7,
        "description": "Ergonomic wireless mouse with quiet clicks.",
        "images": ["https://images.unsplash.com/photo-1527814050087-3793815479db"],
        "category": "mouses",
        "stock": 55,
    },
    {
        "name": "Dell UltraSharp 27",
        "price": 799,
        "rating": 4.6,
        "description": "27 inch QHD monitor with accurate colour.",
        "images": ["https://images.unsplash.com/photo-1527443224154-c4a3942d3acf"],
        "category": "monitors",
        "stock": 22,
    },
]


def seed(db: Database, admin_password: str = "admin123") -> dict:
    """Idempotent: products only go into an empty catalog, the admin only when none exists."""
    seeded_products = 0
    if db["product"].count_documents({}) == 0:
        for p in DEMO_PRODUCTS:
            create_document(db, "product", ProductSchema(**p))
            seeded_products += 1
        logger.info("Seeded %d demo products", seeded_products)
    else:
        logger.info("Products already exist; catalog left untouched")

    admin_created = False
    if db["user"].count_documents({"role": "admin"}) == 0:
        admin = UserSchema(
            name="Admin",
            email=ADMIN_EMAIL,
            password_hash=hash_password(admin_password),
            role="admin",
        )
        create_document(db, "user", admin)
        admin_created = True
        logger.info("Created default admin %s", ADMIN_EMAIL)

    return {
        "products": seeded_products,
        "admin_created": admin_created,
        "total_products": db["product"].count_documents({}),
    }


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    database.ping(database.db)
    database.ensure_indexes(database.db)
    result = seed(database.db, os.getenv("ADMIN_PASSWORD", "admin123"))
    logger.info("Seed finished: %s", result)


if __name__ == "__main__":
    main()
