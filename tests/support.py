import unittest
from typing import Optional

import mongomock
from bson import ObjectId
from fastapi.testclient import TestClient

import database
from main import app


class ApiTestCase(unittest.TestCase):
    """Runs the app against a fresh in-memory database per test."""

    def setUp(self):
        self.db = mongomock.MongoClient()["storefront_test"]
        database.ensure_indexes(self.db)
        app.dependency_overrides[database.get_db] = lambda: self.db
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        self.client.close()

    # ---------- helpers ----------

    def register(self, name="Alice", email="alice@shopmail.com", password="secret1", role=None):
        body = {"name": name, "email": email, "password": password}
        if role:
            body["role"] = role
        resp = self.client.post("/api/auth/register", json=body)
        self.assertEqual(resp.status_code, 201, resp.text)
        # Authenticate explicitly with headers from here on.
        self.client.cookies.clear()
        data = resp.json()
        return data["token"], data["user"]

    def register_admin(self):
        return self.register(name="Root", email="root@shopmail.com", role="admin")

    @staticmethod
    def auth(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}

    def make_product(self, name="Tumbler", price=12.5, stock=5, category="glassware", **extra) -> str:
        doc = {
            "name": name,
            "price": price,
            "rating": 0,
            "reviews": [],
            "description": extra.pop("description", ""),
            "images": [],
            "category": category,
            "stock": stock,
        }
        doc.update(extra)
        return str(self.db["product"].insert_one(doc).inserted_id)

    def stock_of(self, product_id: str) -> int:
        return self.db["product"].find_one({"_id": ObjectId(product_id)})["stock"]

    def order_payload(self, product_id: str, quantity: int = 1, total: Optional[float] = 25.0) -> dict:
        return {
            "shipping_location": {"city": "Austin", "state": "TX", "zipcode": "73301"},
            "items": [{"product_id": product_id, "name": "Tumbler", "quantity": quantity, "price": 12.5}],
            "total_amount": total,
        }

    def place_order(self, token: str, product_id: str, quantity: int = 1):
        return self.client.post(
            "/api/orders", json=self.order_payload(product_id, quantity), headers=self.auth(token)
        )
