from bson import ObjectId

from support import ApiTestCase


class ProfileTestCase(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.token, self.user = self.register()
        self.headers = self.auth(self.token)

    def test_profile_hides_hash_and_expands_orders(self):
        pid = self.make_product(stock=4)
        order_id = self.place_order(self.token, pid).json()["order"]["id"]

        profile = self.client.get("/api/users/profile", headers=self.headers).json()
        self.assertEqual(profile["id"], self.user["id"])
        self.assertNotIn("password_hash", profile)
        self.assertEqual([o["id"] for o in profile["orders"]], [order_id])
        self.assertEqual(profile["orders"][0]["items"][0]["product_id"], pid)

    def test_profile_of_deleted_user(self):
        self.db["user"].delete_one({"_id": ObjectId(self.user["id"])})
        self.assertEqual(self.client.get("/api/users/profile", headers=self.headers).status_code, 404)

    def test_update_profile_partial(self):
        resp = self.client.put(
            "/api/users/profile",
            json={
                "name": " Alicia ",
                "profile_image": "https://img.example.org/a.png",
                "payment": {"card_name": "Alicia", "card_number": "4111111111111111", "expiry_date": "12/29", "cvv": "123"},
            },
            headers=self.headers,
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        user = resp.json()["user"]
        self.assertEqual(user["name"], "Alicia")
        self.assertEqual(user["email"], "alice@shopmail.com")
        self.assertEqual(user["payment"]["card_number"], "4111111111111111")
        self.assertNotIn("password_hash", user)

    def test_update_email_checks_format_and_uniqueness(self):
        self.register(name="Bob", email="bob@shopmail.com")
        taken = self.client.put("/api/users/profile", json={"email": "BOB@shopmail.com"}, headers=self.headers)
        self.assertEqual(taken.status_code, 409)
        bad = self.client.put("/api/users/profile", json={"email": "nope"}, headers=self.headers)
        self.assertEqual(bad.status_code, 400)
        same = self.client.put("/api/users/profile", json={"email": "ALICE@shopmail.com"}, headers=self.headers)
        self.assertEqual(same.status_code, 200)
        moved = self.client.put("/api/users/profile", json={"email": "Alice2@ShopMail.com"}, headers=self.headers)
        self.assertEqual(moved.json()["user"]["email"], "alice2@shopmail.com")

    def test_blank_name_rejected(self):
        resp = self.client.put("/api/users/profile", json={"name": "  "}, headers=self.headers)
        self.assertEqual(resp.status_code, 400)

    def test_change_password(self):
        short = self.client.put(
            "/api/users/password", json={"old_password": "secret1", "new_password": "abc"}, headers=self.headers
        )
        self.assertEqual(short.status_code, 400)
        wrong = self.client.put(
            "/api/users/password", json={"old_password": "guess12", "new_password": "newsecret"}, headers=self.headers
        )
        self.assertEqual(wrong.status_code, 401)
        missing = self.client.put("/api/users/password", json={"new_password": "newsecret"}, headers=self.headers)
        self.assertEqual(missing.status_code, 400)

        ok = self.client.put(
            "/api/users/password", json={"old_password": "secret1", "new_password": "newsecret"}, headers=self.headers
        )
        self.assertEqual(ok.status_code, 200)
        old = self.client.post("/api/auth/login", json={"email": "alice@shopmail.com", "password": "secret1"})
        self.assertEqual(old.status_code, 401)
        new = self.client.post("/api/auth/login", json={"email": "alice@shopmail.com", "password": "newsecret"})
        self.assertEqual(new.status_code, 200)


class AddressTestCase(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.token, _ = self.register()
        self.headers = self.auth(self.token)

    def add(self, city="Austin", state="TX", zipcode="73301"):
        return self.client.post(
            "/api/users/address", json={"city": city, "state": state, "zipcode": zipcode}, headers=self.headers
        )

    def test_add_update_delete(self):
        resp = self.add(city=" Austin ")
        self.assertEqual(resp.status_code, 200, resp.text)
        addresses = resp.json()["user"]["addresses"]
        self.assertEqual(len(addresses), 1)
        first = addresses[0]
        self.assertEqual(first["city"], "Austin")
        self.assertIn("created_at", first)

        second = self.add(city="Dallas", zipcode="75001").json()["user"]["addresses"][1]

        resp = self.client.put(
            f"/api/users/address/{second['id']}",
            json={"city": "Houston", "state": "TX", "zipcode": "77001"},
            headers=self.headers,
        )
        self.assertEqual(resp.status_code, 200)
        addresses = resp.json()["user"]["addresses"]
        self.assertEqual([a["city"] for a in addresses], ["Austin", "Houston"])
        self.assertEqual(addresses[1]["id"], second["id"])

        resp = self.client.delete(f"/api/users/address/{first['id']}", headers=self.headers)
        self.assertEqual([a["city"] for a in resp.json()["user"]["addresses"]], ["Houston"])

    def test_address_validation(self):
        self.assertEqual(self.add(zipcode="").status_code, 400)
        resp = self.client.put(
            f"/api/users/address/{ObjectId()}",
            json={"city": "Houston", "state": "TX", "zipcode": "77001"},
            headers=self.headers,
        )
        self.assertEqual(resp.status_code, 404)


class WishlistTestCase(ApiTestCase):
    def test_add_is_idempotent_and_remove_too(self):
        token, _ = self.register()
        headers = self.auth(token)
        pid = self.make_product()

        self.client.post(f"/api/users/wishlist/{pid}", headers=headers)
        resp = self.client.post(f"/api/users/wishlist/{pid}", headers=headers)
        self.assertEqual(resp.json()["user"]["wishlist"], [pid])

        self.client.delete(f"/api/users/wishlist/{pid}", headers=headers)
        resp = self.client.delete(f"/api/users/wishlist/{pid}", headers=headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["user"]["wishlist"], [])


class UserAdminTestCase(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.admin_token, _ = self.register_admin()
        self.token, self.user = self.register()

    def test_list_users_admin_only(self):
        resp = self.client.get("/api/users", headers=self.auth(self.token))
        self.assertEqual(resp.status_code, 403)

        users = self.client.get("/api/users", headers=self.auth(self.admin_token)).json()
        self.assertEqual(len(users), 2)
        self.assertTrue(all("password_hash" not in u for u in users))

    def test_delete_user_leaves_orders(self):
        pid = self.make_product()
        self.place_order(self.token, pid)

        resp = self.client.delete(f"/api/users/{self.user['id']}", headers=self.auth(self.token))
        self.assertEqual(resp.status_code, 403)

        resp = self.client.delete(f"/api/users/{self.user['id']}", headers=self.auth(self.admin_token))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.db["user"].count_documents({"_id": ObjectId(self.user["id"])}), 0)
        self.assertEqual(self.db["order"].count_documents({}), 1)

        resp = self.client.delete(f"/api/users/{self.user['id']}", headers=self.auth(self.admin_token))
        self.assertEqual(resp.status_code, 404)
