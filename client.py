"""
Python client for the storefront API.

``StorefrontClient`` plays the role of the browser front end: it keeps the
bearer token, the signed-in user and the shopping cart in a ``ClientState``
persisted to a local JSON file. ``restore`` reconciles that saved state with
the server on start-up and ``logout`` tears it down.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


@dataclass
class CartLine:
    product_id: str
    quantity: int


@dataclass
class ClientState:
    token: Optional[str] = None
    user: Optional[dict] = None
    cart: List[CartLine] = field(default_factory=list)

    @classmethod
    def load(cls, path: Optional[str]) -> "ClientState":
        """Read saved state; a missing or corrupt file yields an empty state."""
        if not path or not os.path.exists(path):
            return cls()
        try:
            with open(path, "r") as f:
                raw = json.load(f)
            cart = [CartLine(str(c["product_id"]), int(c["quantity"])) for c in raw.get("cart", [])]
            return cls(token=raw.get("token"), user=raw.get("user"), cart=cart)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Discarding unreadable client state %s: %s", path, e)
            return cls()

    def save(self, path: Optional[str]) -> None:
        if not path:
            return
        with open(path, "w") as f:
            json.dump(asdict(self), f)

    def clear_session(self) -> None:
        self.token = None
        self.user = None


class StorefrontClient:
    def __init__(self, http: httpx.Client, state_path: Optional[str] = None):
        self.http = http
        self.state_path = state_path
        self.state = ClientState()
        self._products: Dict[str, dict] = {}

    # ---------- plumbing ----------

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.state.token:
            headers["Authorization"] = f"Bearer {self.state.token}"
        resp = self.http.request(method, path, headers=headers, **kwargs)
        if resp.is_error:
            try:
                detail = resp.json().get("detail", resp.text)
            except ValueError:
                detail = resp.text
            raise ApiError(resp.status_code, str(detail))
        return resp.json()

    def _save(self) -> None:
        self.state.save(self.state_path)

    @property
    def user(self) -> Optional[dict]:
        return self.state.user

    @property
    def is_authenticated(self) -> bool:
        return self.state.token is not None

    # ---------- session ----------

    def restore(self) -> Optional[dict]:
        """Load saved state and check the saved token is still good."""
        self.state = ClientState.load(self.state_path)
        if self.state.token:
            try:
                self._request("GET", "/api/auth/verify")
                self.state.user = self._request("GET", "/api/users/profile")
            except ApiError as e:
                logger.info("Saved session rejected (%s); signing out locally", e.status_code)
                self.state.clear_session()
            self._save()
        return self.state.user

    def _start_session(self, data: dict) -> dict:
        self.state.token = data["token"]
        self.state.user = data["user"]
        self._save()
        return data["user"]

    def register(self, name: str, email: str, password: str) -> dict:
        data = self._request(
            "POST", "/api/auth/register", json={"name": name, "email": email, "password": password}
        )
        return self._start_session(data)

    def login(self, email: str, password: str) -> dict:
        data = self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        return self._start_session(data)

    def logout(self) -> None:
        try:
            self._request("POST", "/api/auth/logout")
        except (ApiError, httpx.HTTPError) as e:
            logger.warning("Server logout failed: %s", e)
        finally:
            self.state = ClientState()
            self._save()

    # ---------- catalog ----------

    def products(self) -> List[dict]:
        return self._request("GET", "/api/products")

    def product(self, product_id: str) -> dict:
        if product_id not in self._products:
            self._products[product_id] = self._request("GET", f"/api/products/{product_id}")
        return self._products[product_id]

    def products_by_category(self, category: str) -> List[dict]:
        return self._request("GET", f"/api/products/category/{category}")

    def search(self, query: str) -> List[dict]:
        return self._request("GET", "/api/products/search/query", params={"q": query})

    def create_product(self, data: dict) -> dict:
        return self._request("POST", "/api/products", json=data)["product"]

    def update_product(self, product_id: str, data: dict) -> dict:
        self._products.pop(product_id, None)
        return self._request("PUT", f"/api/products/{product_id}", json=data)["product"]

    def delete_product(self, product_id: str) -> None:
        self._products.pop(product_id, None)
        self._request("DELETE", f"/api/products/{product_id}")

    def reviews(self, product_id: str) -> List[dict]:
        return self._request("GET", f"/api/products/{product_id}/reviews")["reviews"]

    def submit_review(self, product_id: str, rating: float, comment: str) -> dict:
        return self._request(
            "POST", f"/api/products/{product_id}/review", json={"rating": rating, "comment": comment}
        )

    # ---------- profile ----------

    def _refresh_user(self, data: dict) -> dict:
        self.state.user = data["user"]
        self._save()
        return self.state.user

    def profile(self) -> dict:
        self.state.user = self._request("GET", "/api/users/profile")
        self._save()
        return self.state.user

    def update_profile(self, **changes) -> dict:
        return self._refresh_user(self._request("PUT", "/api/users/profile", json=changes))

    def change_password(self, old_password: str, new_password: str) -> None:
        self._request(
            "PUT",
            "/api/users/password",
            json={"old_password": old_password, "new_password": new_password},
        )

    def add_address(self, city: str, state: str, zipcode: str) -> dict:
        body = {"city": city, "state": state, "zipcode": zipcode}
        return self._refresh_user(self._request("POST", "/api/users/address", json=body))

    def update_address(self, address_id: str, city: str, state: str, zipcode: str) -> dict:
        body = {"city": city, "state": state, "zipcode": zipcode}
        return self._refresh_user(self._request("PUT", f"/api/users/address/{address_id}", json=body))

    def delete_address(self, address_id: str) -> dict:
        return self._refresh_user(self._request("DELETE", f"/api/users/address/{address_id}"))

    def in_wishlist(self, product_id: str) -> bool:
        return bool(self.state.user) and product_id in self.state.user.get("wishlist", [])

    def toggle_wishlist(self, product_id: str) -> bool:
        """Add or remove ``product_id``; returns whether it is now wishlisted."""
        method = "DELETE" if self.in_wishlist(product_id) else "POST"
        self._refresh_user(self._request(method, f"/api/users/wishlist/{product_id}"))
        return self.in_wishlist(product_id)

    def users(self) -> List[dict]:
        return self._request("GET", "/api/users")

    def delete_user(self, user_id: str) -> None:
        self._request("DELETE", f"/api/users/{user_id}")

    # ---------- orders ----------

    def my_orders(self) -> List[dict]:
        return self._request("GET", "/api/orders/user")

    def all_orders(self) -> List[dict]:
        return self._request("GET", "/api/orders")

    def update_order_status(self, order_id: str, status: str) -> dict:
        return self._request("PUT", f"/api/orders/{order_id}", json={"status": status})["order"]

    def delete_order(self, order_id: str) -> None:
        self._request("DELETE", f"/api/orders/{order_id}")

    # ---------- cart ----------

    def _line(self, product_id: str) -> Optional[CartLine]:
        for line in self.state.cart:
            if line.product_id == product_id:
                return line
        return None

    def add_to_cart(self, product_id: str, quantity: int = 1) -> None:
        self.product(product_id)
        line = self._line(product_id)
        if line:
            line.quantity += quantity
        else:
            self.state.cart.append(CartLine(product_id, quantity))
        self._save()

    def update_quantity(self, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove_from_cart(product_id)
            return
        line = self._line(product_id)
        if line:
            line.quantity = quantity
            self._save()

    def remove_from_cart(self, product_id: str) -> None:
        self.state.cart = [line for line in self.state.cart if line.product_id != product_id]
        self._save()

    def clear_cart(self) -> None:
        self.state.cart = []
        self._save()

    def cart_count(self) -> int:
        return sum(line.quantity for line in self.state.cart)

    def cart_total(self) -> float:
        total = 0.0
        for line in self.state.cart:
            total += self.product(line.product_id).get("price", 0) * line.quantity
        return round(total, 2)

    def checkout(self, city: str, state: str, zipcode: str) -> dict:
        """Place an order for the whole cart and empty it."""
        if not self.state.cart:
            raise ValueError("Cart is empty")
        items = []
        for line in self.state.cart:
            product = self.product(line.product_id)
            items.append({
                "product_id": line.product_id,
                "name": product["name"],
                "quantity": line.quantity,
                "price": product["price"],
            })
        payload = {
            "shipping_location": {"city": city, "state": state, "zipcode": zipcode},
            "items": items,
            "total_amount": self.cart_total(),
        }
        order = self._request("POST", "/api/orders", json=payload)["order"]
        # Stock changed server side.
        for line in self.state.cart:
            self._products.pop(line.product_id, None)
        self.clear_cart()
        return order
