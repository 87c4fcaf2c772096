# src/api/endpoints.py
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from api import models
from api.client import ApiClient
from api.errors import UnauthorizedError


def _to_int(val) -> Optional[int]:
    try:
        return int(val)
    except (TypeError, ValueError):
        return None


def _to_float(val, default: float = 0.0) -> float:
    try:
        return float(val)
    except (TypeError, ValueError):
        return default


def _to_datetime(val) -> Optional[datetime]:
    if not val:
        return None
    if isinstance(val, datetime):
        return val
    try:
        # backend sends ISO strings with a trailing Z
        parsed = datetime.fromisoformat(str(val).replace("Z", "+00:00"))
    except ValueError:
        return None
    # naive timestamps are UTC
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _user(row: Dict[str, Any]) -> models.User:
    return models.User(
        id=int(row["id"]),
        username=row.get("username") or "",
        email=row.get("email") or "",
        role=row.get("role") or "buyer",
        name=row.get("name"),
        approved=bool(row.get("approved", False)),
        rejected=bool(row.get("rejected", False)),
    )


def _product(row: Dict[str, Any]) -> models.Product:
    return models.Product(
        id=int(row["id"]),
        name=row.get("name") or "",
        price=_to_float(row.get("price")),
        stock=_to_int(row.get("stock")) or 0,
        category=row.get("category") or "",
        approved=bool(row.get("approved", False)),
        seller_id=_to_int(row.get("sellerId")),
        description=row.get("description") or "",
        image_url=row.get("imageUrl") or row.get("image_url"),
        images=row.get("images"),
    )


def _cart_item(row: Dict[str, Any]) -> models.CartItem:
    product = _product(row["product"]) if row.get("product") else None
    product_id = _to_int(row.get("productId"))
    if product_id is None and product is not None:
        product_id = product.id
    return models.CartItem(
        id=int(row["id"]),
        product_id=product_id,
        quantity=_to_int(row.get("quantity")) or 0,
        user_id=_to_int(row.get("userId")),
        product=product,
    )


def _order(row: Dict[str, Any]) -> models.Order:
    shipping = row.get("shippingDetails") or ""
    if not isinstance(shipping, str):
        shipping = json.dumps(shipping)
    return models.Order(
        id=int(row["id"]),
        user_id=_to_int(row.get("userId")),
        status=row.get("status") or "pending",
        total=_to_float(row.get("total")),
        date=_to_datetime(row.get("date") or row.get("createdAt")),
        shipping_details=shipping,
        payment_method=row.get("paymentMethod") or "cod",
        address_id=_to_int(row.get("addressId")),
    )


def _order_item(row: Dict[str, Any]) -> models.OrderItem:
    return models.OrderItem(
        id=int(row["id"]),
        order_id=int(row["orderId"]),
        product_id=int(row["productId"]),
        quantity=_to_int(row.get("quantity")) or 0,
        price=_to_float(row.get("price")),
        product=_product(row["product"]) if row.get("product") else None,
    )


def _recommendation(row: Dict[str, Any]) -> models.ProductRecommendation:
    return models.ProductRecommendation(
        id=int(row["id"]),
        name=row.get("name") or "",
        price=_to_float(row.get("price")),
        description=row.get("description") or "",
        image_url=row.get("imageUrl"),
        category=row.get("category") or "",
        seller_id=_to_int(row.get("sellerId")),
    )


def _messages(rows: List[Dict[str, Any]]) -> List[models.ConversationMessage]:
    return [
        models.ConversationMessage(role=row["role"], content=row.get("content") or "")
        for row in rows
        if row.get("role") in ("user", "assistant")
    ]


# ---------------------------
# Auth & Session
# ---------------------------


async def get_current_user(client: ApiClient) -> Optional[models.User]:
    """Return the logged in User, or None when the backend answers 401."""
    try:
        row = await client.get("/api/user")
    except UnauthorizedError:
        return None
    return _user(row) if row else None


async def request_otp(client: ApiClient, email: str) -> None:
    """Ask the backend to mail a one time login code."""
    await client.post("/api/auth/request-otp", json={"email": email})


async def verify_otp(client: ApiClient, email: str, otp: str) -> models.OtpResult:
    """
    Verify the code. Existing users come back logged in (session cookie set);
    unknown emails come back with is_new_user and must register.
    """
    body = await client.post("/api/auth/verify-otp", json={"email": email, "otp": otp})
    body = body or {}
    user_row = body.get("user")
    return models.OtpResult(
        is_new_user=bool(body.get("isNewUser", False)),
        email=body.get("email") or email,
        user=_user(user_row) if user_row else None,
        message=body.get("message") or "",
    )


async def register(
    client: ApiClient,
    username: str,
    email: str,
    name: Optional[str] = None,
    role: str = "buyer",
) -> models.User:
    """Complete registration after OTP verification; the new user is logged in."""
    body = await client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "name": name, "role": role},
    )
    return _user(body["user"])


async def logout(client: ApiClient) -> None:
    await client.post("/api/auth/logout")


# ---------------------------
# Products
# ---------------------------


async def list_products(
    client: ApiClient,
    page: int = 1,
    limit: int = 12,
    category: Optional[str] = None,
    seller_id: Optional[int] = None,
    approved: Optional[bool] = None,
) -> models.ProductPage:
    """Paginated product listing with optional filters."""
    body = await client.get(
        "/api/products",
        params={
            "page": page,
            "limit": limit,
            "category": category,
            "sellerId": seller_id,
            "approved": None if approved is None else str(approved).lower(),
        },
    )
    pagination = body.get("pagination") or {}
    return models.ProductPage(
        products=[_product(row) for row in body.get("products") or []],
        total=_to_int(pagination.get("total")) or 0,
        total_pages=_to_int(pagination.get("totalPages")) or 1,
        current_page=_to_int(pagination.get("currentPage")) or page,
        limit=_to_int(pagination.get("limit")) or limit,
    )


async def search_products(
    client: ApiClient, query: str, limit: int = 10
) -> List[models.Product]:
    """Keyword search; an empty query matches nothing without calling the backend."""
    phrase = (query or "").strip()
    if not phrase:
        return []
    rows = await client.get("/api/search", params={"q": phrase, "limit": limit})
    return [_product(row) for row in rows or []]


async def get_product(client: ApiClient, product_id: int) -> models.Product:
    return _product(await client.get(f"/api/products/{product_id}"))


async def update_product_price_stock(
    client: ApiClient,
    product_id: int,
    new_price: Optional[float],
    new_stock: Optional[int],
) -> Optional[models.Product]:
    """
    Update price and/or stock (only provided fields). Returns the updated
    Product, or None when there was nothing to send.
    """
    payload: Dict[str, Any] = {}
    if new_price is not None:
        payload["price"] = new_price
    if new_stock is not None:
        payload["stock"] = new_stock
    if not payload:
        return None
    return _product(await client.put(f"/api/products/{product_id}", json=payload))


# ---------------------------
# Cart
# ---------------------------


async def list_cart(client: ApiClient) -> List[models.CartItem]:
    """Cart rows of the logged in buyer, each with its product joined."""
    rows = await client.get("/api/cart")
    return [_cart_item(row) for row in rows or []]


async def add_to_cart(
    client: ApiClient, product_id: int, quantity: int = 1
) -> models.CartItem:
    """
    Create the cart row, or increment it if the product is already in the cart.
    """
    row = await client.post(
        "/api/cart", json={"productId": product_id, "quantity": quantity}
    )
    return _cart_item(row)


async def update_cart_item(
    client: ApiClient, cart_item_id: int, quantity: int
) -> models.CartItem:
    row = await client.put(f"/api/cart/{cart_item_id}", json={"quantity": quantity})
    return _cart_item(row)


async def remove_cart_item(client: ApiClient, cart_item_id: int) -> None:
    await client.delete(f"/api/cart/{cart_item_id}")


# ---------------------------
# Orders
# ---------------------------


async def create_order(
    client: ApiClient,
    shipping: models.ShippingDetails,
    payment_method: str,
    total: float,
    address_id: Optional[int] = None,
) -> models.Order:
    """
    Place an order from the current server-side cart. The backend builds the
    order lines and empties the cart in the same step.
    """
    payload: Dict[str, Any] = {
        "total": total,
        "paymentMethod": payment_method,
        "shippingDetails": json.dumps(
            {
                "name": shipping.name,
                "email": shipping.email,
                "phone": shipping.phone,
                "address": shipping.address,
                "city": shipping.city,
                "state": shipping.state,
                "zipCode": shipping.zip_code,
                "notes": shipping.notes,
            }
        ),
    }
    if address_id is not None:
        payload["addressId"] = address_id
    return _order(await client.post("/api/orders", json=payload))


async def list_orders(client: ApiClient) -> List[models.Order]:
    """
    Orders visible to the session: own orders for buyers, orders with their
    products for sellers, everything for admins. Newest first.
    """
    rows = await client.get("/api/orders")
    orders = [_order(row) for row in rows or []]
    orders.sort(key=lambda o: o.date.timestamp() if o.date else 0.0, reverse=True)
    return orders


async def get_order(client: ApiClient, order_id: int) -> models.Order:
    return _order(await client.get(f"/api/orders/{order_id}"))


async def get_order_items(client: ApiClient, order_id: int) -> List[models.OrderItem]:
    rows = await client.get(f"/api/orders/{order_id}/items")
    return [_order_item(row) for row in rows or []]


# ---------------------------
# AI assistant
# ---------------------------


async def get_ai_session(client: ApiClient) -> str:
    body = await client.get("/api/ai/session")
    session_id = (body or {}).get("sessionId")
    if not session_id:
        raise ValueError("Backend returned no sessionId")
    return str(session_id)


async def track_activity(
    client: ApiClient,
    session_id: str,
    activity_type: str,
    product_id: Optional[int] = None,
    category_id: Optional[int] = None,
    search_query: Optional[str] = None,
    additional_data: Optional[Dict[str, Any]] = None,
) -> None:
    await client.post(
        "/api/ai/track-activity",
        json={
            "sessionId": session_id,
            "activityType": activity_type,
            "productId": product_id,
            "categoryId": category_id,
            "searchQuery": search_query,
            "additionalData": additional_data,
        },
    )


async def get_recommendations(
    client: ApiClient, session_id: str, limit: int = 5
) -> List[models.ProductRecommendation]:
    rows = await client.get(
        "/api/ai/recommendations", params={"sessionId": session_id, "limit": limit}
    )
    return [_recommendation(row) for row in rows or []]


async def get_complementary_products(
    client: ApiClient, product_id: int, session_id: str, limit: int = 5
) -> List[models.ProductRecommendation]:
    rows = await client.get(
        f"/api/ai/complementary-products/{product_id}",
        params={"sessionId": session_id, "limit": limit},
    )
    return [_recommendation(row) for row in rows or []]


async def get_size_recommendation(
    client: ApiClient, product_id: int, category: Optional[str] = None
) -> models.SizeRecommendation:
    body = await client.get(
        f"/api/ai/size-recommendations/{product_id}", params={"category": category}
    )
    body = body or {}
    return models.SizeRecommendation(
        recommended_size=body.get("recommendedSize"),
        confidence=_to_float(body.get("confidence")),
        message=body.get("message") or "",
    )


async def ask_product_question(
    client: ApiClient, product_id: int, question: str, session_id: str
) -> str:
    body = await client.post(
        f"/api/ai/product-qa/{product_id}",
        json={"question": question, "sessionId": session_id},
    )
    return (body or {}).get("answer") or ""


async def chat(
    client: ApiClient,
    message: str,
    session_id: str,
    history: List[models.ConversationMessage],
    product_id: Optional[int] = None,
    category_id: Optional[int] = None,
) -> List[models.ConversationMessage]:
    """
    Send one chat turn. ``history`` is the conversation before this message;
    the backend answers with the full updated conversation.
    """
    body = await client.post(
        "/api/ai/chat",
        json={
            "message": message,
            "sessionId": session_id,
            "productId": product_id,
            "categoryId": category_id,
            "conversationHistory": [
                {"role": m.role, "content": m.content} for m in history
            ],
        },
    )
    return _messages((body or {}).get("conversationHistory") or [])
