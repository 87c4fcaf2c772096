# dataclass models of the marketplace REST payloads

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Literal, Optional

Role = Literal["buyer", "seller", "admin"]
ROLES = ("buyer", "seller", "admin")

PaymentMethod = Literal["cod", "razorpay"]
PAYMENT_METHODS = ("cod", "razorpay")


@dataclass(frozen=True)
class User:
    id: int
    username: str
    email: str
    role: str  # "buyer", "seller" or "admin"
    name: Optional[str] = None
    approved: bool = False
    rejected: bool = False


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    price: float
    stock: int
    category: str = ""
    approved: bool = False
    seller_id: Optional[int] = None
    description: str = ""
    image_url: Optional[str] = None
    images: Optional[str] = None  # JSON encoded list of secondary images


@dataclass(frozen=True)
class ProductPage:
    products: List[Product]
    total: int
    total_pages: int
    current_page: int
    limit: int


@dataclass(frozen=True)
class CartItem:
    id: int
    product_id: int
    quantity: int
    user_id: Optional[int] = None
    product: Optional[Product] = None


@dataclass(frozen=True)
class ShippingDetails:
    name: str
    email: str
    phone: str
    address: str
    city: str
    state: str
    zip_code: str
    notes: str = ""


@dataclass(frozen=True)
class Order:
    id: int
    user_id: Optional[int]
    status: str
    total: float
    date: Optional[datetime]
    shipping_details: str  # raw JSON string as stored by the backend
    payment_method: str = "cod"
    address_id: Optional[int] = None


@dataclass(frozen=True)
class OrderItem:
    id: int
    order_id: int
    product_id: int
    quantity: int
    price: float  # unit price at time of order
    product: Optional[Product] = None


@dataclass(frozen=True)
class OtpResult:
    is_new_user: bool
    email: str
    user: Optional[User] = None
    message: str = ""


@dataclass(frozen=True)
class ConversationMessage:
    role: Literal["user", "assistant"]
    content: str


@dataclass(frozen=True)
class ProductRecommendation:
    id: int
    name: str
    price: float
    description: str = ""
    image_url: Optional[str] = None
    category: str = ""
    seller_id: Optional[int] = None


@dataclass(frozen=True)
class SizeRecommendation:
    recommended_size: Optional[str]
    confidence: float
    message: str


@dataclass(frozen=True)
class GuestCartItem:
    product_id: int
    quantity: int
    added_at: datetime = field(default_factory=datetime.now)
