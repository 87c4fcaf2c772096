# In-memory stand-in for the marketplace REST backend, served through
# httpx.MockTransport so the real ApiClient and stores run unchanged.
import asyncio
import itertools
import json
import os
import re
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx

from db import database as db_database
from utils.state import AppState

BASE_URL = "http://bazaar.test"
VALID_OTP = "123456"

Failure = Union[int, Exception]


class FakeNotifier:
    def __init__(self) -> None:
        self.notices: List[Tuple[str, str, str]] = []

    def notify(self, message: str, *, title: str = "", severity: str = "information") -> None:
        self.notices.append((message, title, severity))

    def titles(self) -> List[str]:
        return [t for _, t, _ in self.notices]

    def severities(self) -> List[str]:
        return [s for _, _, s in self.notices]


class FakeNavigator:
    def __init__(self) -> None:
        self.paths: List[str] = []

    async def navigate(self, path: str) -> None:
        self.paths.append(path)


class FakeBackend:
    """
    Keeps users, products, carts and orders in dicts. Sessions are tracked
    through a ``sid`` cookie, like the real backend's session cookie.

    ``fail(method, path, status_or_exc)`` makes matching requests answer
    with an error status or raise a transport exception; ``hold(method,
    path)`` returns an event the request waits on before being answered.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.users: Dict[str, Dict[str, Any]] = {}
        self.sessions: Dict[str, int] = {}
        self.products: Dict[int, Dict[str, Any]] = {}
        self.cart: Dict[int, Dict[str, Any]] = {}
        self.orders: Dict[int, Dict[str, Any]] = {}
        self.order_items: List[Dict[str, Any]] = []
        self.requests: List[httpx.Request] = []
        self.failures: Dict[Tuple[str, str], Failure] = {}
        self.holds: Dict[Tuple[str, str], asyncio.Event] = {}
        self.ai_session_id: Optional[str] = "ai-session-1"
        self.routes: List[Tuple[str, re.Pattern, Callable]] = [
            ("GET", re.compile(r"^/api/user$"), self.get_user),
            ("POST", re.compile(r"^/api/auth/request-otp$"), self.request_otp),
            ("POST", re.compile(r"^/api/auth/verify-otp$"), self.verify_otp),
            ("POST", re.compile(r"^/api/auth/register$"), self.register),
            ("POST", re.compile(r"^/api/auth/logout$"), self.logout),
            ("GET", re.compile(r"^/api/products$"), self.list_products),
            ("GET", re.compile(r"^/api/search$"), self.search),
            ("GET", re.compile(r"^/api/products/(\d+)$"), self.get_product),
            ("PUT", re.compile(r"^/api/products/(\d+)$"), self.update_product),
            ("GET", re.compile(r"^/api/cart$"), self.list_cart),
            ("POST", re.compile(r"^/api/cart$"), self.add_cart),
            ("PUT", re.compile(r"^/api/cart/(\d+)$"), self.update_cart),
            ("DELETE", re.compile(r"^/api/cart/(\d+)$"), self.delete_cart),
            ("POST", re.compile(r"^/api/orders$"), self.create_order),
            ("GET", re.compile(r"^/api/orders$"), self.list_orders),
            ("GET", re.compile(r"^/api/orders/(\d+)$"), self.get_order),
            ("GET", re.compile(r"^/api/orders/(\d+)/items$"), self.get_order_items),
            ("GET", re.compile(r"^/api/ai/session$"), self.ai_session),
            ("POST", re.compile(r"^/api/ai/track-activity$"), self.ai_track),
            ("GET", re.compile(r"^/api/ai/recommendations$"), self.ai_recommendations),
            ("GET", re.compile(r"^/api/ai/complementary-products/(\d+)$"), self.ai_complementary),
            ("GET", re.compile(r"^/api/ai/size-recommendations/(\d+)$"), self.ai_size),
            ("POST", re.compile(r"^/api/ai/product-qa/(\d+)$"), self.ai_qa),
            ("POST", re.compile(r"^/api/ai/chat$"), self.ai_chat),
        ]

    # ---------- test helpers ----------

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def add_user(self, email: str, role: str = "buyer", name: str = "") -> Dict[str, Any]:
        user = {
            "id": next(self._ids),
            "username": email.split("@")[0],
            "email": email,
            "role": role,
            "name": name or email.split("@")[0].title(),
            "approved": True,
            "rejected": False,
        }
        self.users[email] = user
        return user

    def add_product(
        self,
        name: str,
        price: float,
        stock: int = 10,
        category: str = "general",
        seller_id: Optional[int] = None,
        approved: bool = True,
        images: Optional[str] = None,
    ) -> Dict[str, Any]:
        product = {
            "id": next(self._ids),
            "name": name,
            "price": price,
            "stock": stock,
            "category": category,
            "sellerId": seller_id,
            "approved": approved,
            "description": f"{name} description",
            "imageUrl": None,
            "images": images,
        }
        self.products[product["id"]] = product
        return product

    def fail(self, method: str, path: str, failure: Failure = 500) -> None:
        self.failures[(method, path)] = failure

    def hold(self, method: str, path: str) -> asyncio.Event:
        event = asyncio.Event()
        self.holds[(method, path)] = event
        return event

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> List[httpx.Request]:
        return [
            r
            for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path == path)
        ]

    def writes(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method in ("POST", "PUT", "DELETE")]

    def cart_of(self, user_id: int) -> List[Dict[str, Any]]:
        return [row for row in self.cart.values() if row["userId"] == user_id]

    # ---------- dispatch ----------

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)

        if key in self.holds:
            await self.holds[key].wait()

        failure = self.failures.get(key)
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            return httpx.Response(failure, json={"error": "Injected failure"})

        for method, pattern, handler in self.routes:
            match = pattern.match(request.url.path)
            if method == request.method and match:
                return handler(request, *match.groups())
        return httpx.Response(404, json={"error": "Not found"})

    def _user_of(self, request: httpx.Request) -> Optional[Dict[str, Any]]:
        cookie = request.headers.get("cookie", "")
        for part in cookie.split(";"):
            name, _, value = part.strip().partition("=")
            if name == "sid" and value in self.sessions:
                uid = self.sessions[value]
                return next((u for u in self.users.values() if u["id"] == uid), None)
        return None

    def _login(self, user: Dict[str, Any], body: Dict[str, Any]) -> httpx.Response:
        sid = f"sid{next(self._ids)}"
        self.sessions[sid] = user["id"]
        return httpx.Response(200, json=body, headers={"set-cookie": f"sid={sid}; Path=/"})

    def _buyer(self, request: httpx.Request) -> Union[Dict[str, Any], httpx.Response]:
        user = self._user_of(request)
        if user is None:
            return httpx.Response(401, json={"error": "Not authenticated"})
        if user["role"] != "buyer":
            return httpx.Response(403, json={"error": "Only buyers have a cart"})
        return user

    @staticmethod
    def _json(request: httpx.Request) -> Dict[str, Any]:
        return json.loads(request.content) if request.content else {}

    # ---------- auth ----------

    def get_user(self, request):
        user = self._user_of(request)
        if user is None:
            return httpx.Response(401, json={"error": "Not authenticated"})
        return httpx.Response(200, json=user)

    def request_otp(self, request):
        return httpx.Response(200, json={"message": "OTP sent"})

    def verify_otp(self, request):
        body = self._json(request)
        if body.get("otp") != VALID_OTP:
            return httpx.Response(400, json={"error": "Invalid or expired OTP"})
        user = self.users.get(body.get("email"))
        if user is None:
            return httpx.Response(
                200,
                json={"isNewUser": True, "email": body.get("email"), "message": "Please register"},
            )
        return self._login(user, {"user": user, "message": "Login successful"})

    def register(self, request):
        body = self._json(request)
        if body["email"] in self.users:
            return httpx.Response(400, json={"error": "Email already registered"})
        user = self.add_user(body["email"], role=body.get("role") or "buyer", name=body.get("name") or "")
        user["username"] = body["username"]
        return self._login(user, {"user": user})

    def logout(self, request):
        cookie = request.headers.get("cookie", "")
        for part in cookie.split(";"):
            name, _, value = part.strip().partition("=")
            if name == "sid":
                self.sessions.pop(value, None)
        return httpx.Response(200, json={"message": "Logged out"})

    # ---------- products ----------

    def list_products(self, request):
        params = request.url.params
        rows = list(self.products.values())
        if params.get("approved") == "true":
            rows = [p for p in rows if p["approved"]]
        if params.get("sellerId"):
            rows = [p for p in rows if p["sellerId"] == int(params["sellerId"])]
        page = int(params.get("page", 1))
        limit = int(params.get("limit", 12))
        total = len(rows)
        return httpx.Response(
            200,
            json={
                "products": rows[(page - 1) * limit : page * limit],
                "pagination": {
                    "total": total,
                    "totalPages": max(-(-total // limit), 1),
                    "currentPage": page,
                    "limit": limit,
                },
            },
        )

    def search(self, request):
        q = request.url.params.get("q", "").lower()
        rows = [p for p in self.products.values() if q in p["name"].lower()]
        return httpx.Response(200, json=rows)

    def get_product(self, request, pid):
        product = self.products.get(int(pid))
        if product is None:
            return httpx.Response(404, json={"error": "Product not found"})
        return httpx.Response(200, json=product)

    def update_product(self, request, pid):
        user = self._user_of(request)
        product = self.products.get(int(pid))
        if product is None:
            return httpx.Response(404, json={"error": "Product not found"})
        if user is None or user["id"] != product["sellerId"]:
            return httpx.Response(403, json={"error": "Not your product"})
        product.update({k: v for k, v in self._json(request).items() if k in ("price", "stock")})
        return httpx.Response(200, json=product)

    # ---------- cart ----------

    def _cart_row(self, row):
        return dict(row, product=self.products.get(row["productId"]))

    def list_cart(self, request):
        user = self._buyer(request)
        if isinstance(user, httpx.Response):
            return user
        return httpx.Response(200, json=[self._cart_row(r) for r in self.cart_of(user["id"])])

    def add_cart(self, request):
        user = self._buyer(request)
        if isinstance(user, httpx.Response):
            return user
        body = self._json(request)
        pid, qty = int(body["productId"]), int(body.get("quantity", 1))
        if pid not in self.products:
            return httpx.Response(404, json={"error": "Product not found"})
        row = next((r for r in self.cart_of(user["id"]) if r["productId"] == pid), None)
        if row is None:
            row = {"id": next(self._ids), "userId": user["id"], "productId": pid, "quantity": 0}
            self.cart[row["id"]] = row
        row["quantity"] += qty
        return httpx.Response(200, json=self._cart_row(row))

    def update_cart(self, request, cid):
        user = self._buyer(request)
        if isinstance(user, httpx.Response):
            return user
        row = self.cart.get(int(cid))
        if row is None or row["userId"] != user["id"]:
            return httpx.Response(404, json={"error": "Cart item not found"})
        row["quantity"] = int(self._json(request)["quantity"])
        return httpx.Response(200, json=self._cart_row(row))

    def delete_cart(self, request, cid):
        user = self._buyer(request)
        if isinstance(user, httpx.Response):
            return user
        row = self.cart.get(int(cid))
        if row is None or row["userId"] != user["id"]:
            return httpx.Response(404, json={"error": "Cart item not found"})
        del self.cart[int(cid)]
        return httpx.Response(204)

    # ---------- orders ----------

    def create_order(self, request):
        user = self._buyer(request)
        if isinstance(user, httpx.Response):
            return user
        rows = self.cart_of(user["id"])
        if not rows:
            return httpx.Response(400, json={"error": "Cart is empty"})
        body = self._json(request)
        order = {
            "id": next(self._ids),
            "userId": user["id"],
            "status": "pending",
            "total": body["total"],
            "date": (datetime.now(timezone.utc) + timedelta(seconds=len(self.orders))).isoformat(),
            "shippingDetails": body["shippingDetails"],
            "paymentMethod": body["paymentMethod"],
            "addressId": body.get("addressId"),
        }
        self.orders[order["id"]] = order
        for row in rows:
            self.order_items.append(
                {
                    "id": next(self._ids),
                    "orderId": order["id"],
                    "productId": row["productId"],
                    "quantity": row["quantity"],
                    "price": self.products[row["productId"]]["price"],
                }
            )
            del self.cart[row["id"]]
        return httpx.Response(201, json=order)

    def list_orders(self, request):
        user = self._user_of(request)
        if user is None:
            return httpx.Response(401, json={"error": "Not authenticated"})
        rows = list(self.orders.values())
        if user["role"] == "buyer":
            rows = [o for o in rows if o["userId"] == user["id"]]
        return httpx.Response(200, json=rows)

    def get_order(self, request, oid):
        order = self.orders.get(int(oid))
        if order is None:
            return httpx.Response(404, json={"error": "Order not found"})
        return httpx.Response(200, json=order)

    def get_order_items(self, request, oid):
        rows = [
            dict(i, product=self.products.get(i["productId"]))
            for i in self.order_items
            if i["orderId"] == int(oid)
        ]
        return httpx.Response(200, json=rows)

    # ---------- ai ----------

    def ai_session(self, request):
        return httpx.Response(200, json={"sessionId": self.ai_session_id})

    def ai_track(self, request):
        return httpx.Response(200, json={"success": True})

    def ai_recommendations(self, request):
        limit = int(request.url.params.get("limit", 5))
        return httpx.Response(200, json=list(self.products.values())[:limit])

    def ai_complementary(self, request, pid):
        rows = [p for p in self.products.values() if p["id"] != int(pid)]
        return httpx.Response(200, json=rows)

    def ai_size(self, request, pid):
        return httpx.Response(
            200, json={"recommendedSize": "M", "confidence": 0.8, "message": "Based on your orders"}
        )

    def ai_qa(self, request, pid):
        product = self.products.get(int(pid))
        name = product["name"] if product else "this product"
        return httpx.Response(200, json={"answer": f"{name} is great."})

    def ai_chat(self, request):
        body = self._json(request)
        history = body.get("conversationHistory") or []
        reply = f"You said: {body['message']}"
        history = history + [
            {"role": "user", "content": body["message"]},
            {"role": "assistant", "content": reply},
        ]
        return httpx.Response(200, json={"response": reply, "conversationHistory": history})


class BackendTestCase(unittest.IsolatedAsyncioTestCase):
    """Fresh fake backend, app state and guest cart file per test."""

    def setUp(self):
        # Point the guest cart to a temporary file and force re-initialization
        self.temp_dir = tempfile.TemporaryDirectory()
        db_database.DB_PATH = os.path.join(self.temp_dir.name, "guest_cart.sqlite")
        db_database._initialized = False

        self.backend = FakeBackend()
        self.notifier = FakeNotifier()
        self.state = AppState.create(
            notifier=self.notifier,
            base_url=BASE_URL,
            transport=self.backend.transport(),
        )

    async def asyncTearDown(self):
        await self.state.aclose()

    def tearDown(self):
        self.temp_dir.cleanup()

    async def login(self, email: str, role: str = "buyer"):
        if email not in self.backend.users:
            self.backend.add_user(email, role=role)
        result = await self.state.session.verify_otp(email, VALID_OTP)
        return result.user
