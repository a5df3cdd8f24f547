"""
Data models for the SkinAura storefront

Users and orders are stored in MongoDB collections named after the lowercase
class name ("user", "order"). Carts, wishlists, saved addresses and the last
order snapshot live in the key/value collection as JSON.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

ProductCategory = Literal["Face Serum", "Face Wash", "Sun Screen"]
PaymentMethod = Literal["COD", "Online", "GPay", "PhonePe", "Razorpay"]
PaymentStatus = Literal["pending", "processing", "completed", "failed", "refunded"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
SortBy = Literal["price-low-high", "price-high-low", "newest", "popularity"]
UserRole = Literal["user", "admin"]


# ------------ Users ------------
class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")
    password_hash: str = Field(..., description="Hashed password")
    role: UserRole = "user"
    phone_number: Optional[str] = None
    is_active: bool = Field(True)


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class UserOut(BaseModel):
    id: str
    name: str
    email: EmailStr
    role: UserRole = "user"
    phone_number: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone_number: Optional[str] = None


class ForgotPassword(BaseModel):
    email: EmailStr


class ResetPassword(BaseModel):
    token: str
    password: str = Field(..., min_length=6)


# ------------ Catalog ------------
class Product(BaseModel):
    id: str
    name: str
    description: str
    price: float = Field(..., ge=0)
    image: str = "/placeholder.svg"
    category: ProductCategory
    stock: int = Field(..., ge=0)
    rating: float = Field(0.0, ge=0, le=5)
    num_reviews: int = Field(0, ge=0)
    featured: bool = False
    best_seller: bool = False
    new: bool = False


class ProductFilter(BaseModel):
    category: Literal["all", "Face Serum", "Face Wash", "Sun Screen"] = "all"
    min_price: Optional[float] = Field(0, ge=0)
    max_price: Optional[float] = Field(2000, ge=0)
    in_stock: bool = False
    sort_by: Optional[SortBy] = "popularity"
    search_term: Optional[str] = None


# ------------ Cart & wishlist ------------
class CartLine(BaseModel):
    product: Product
    quantity: int = Field(..., ge=1)


class AddToCart(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class UpdateQuantity(BaseModel):
    quantity: int


class AddToWishlist(BaseModel):
    product_id: str


class PriceSummary(BaseModel):
    subtotal: float
    shipping_cost: float
    tax: float = 0.0
    total: float


# ------------ Addresses ------------
class ShippingAddress(BaseModel):
    full_name: str = ""
    address_line1: str = ""
    address_line2: Optional[str] = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    phone_number: str = ""


class SavedAddress(ShippingAddress):
    id: str = ""
    is_default: bool = False


class AddressIn(ShippingAddress):
    is_default: bool = False


# ------------ Orders ------------
class OrderItem(BaseModel):
    product: Product
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price captured at purchase")


class Order(BaseModel):
    id: str
    user_id: str
    items: List[OrderItem]
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    payment_status: PaymentStatus = "pending"
    status: OrderStatus = "pending"
    subtotal: float
    shipping_cost: float
    tax: float = 0.0
    total: float
    created_at: datetime
    updated_at: datetime
    tracking_number: Optional[str] = None
    notes: Optional[str] = None


class OrderConfirmation(BaseModel):
    order_id: str
    order_date: str
    items: List[OrderItem]
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    subtotal: float
    shipping_cost: float
    total: float


class CheckoutRequest(BaseModel):
    shipping_address: ShippingAddress
    payment_method: PaymentMethod = "Online"
    notes: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    tracking_number: Optional[str] = None
