import enum
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Float, ForeignKey, Integer, BigInteger, Text, UniqueConstraint, Uuid
from sqlmodel import Column, SQLModel, Field, Relationship, String
from uuid6 import uuid7
from storefront.common.utils import now


def _public_id_column() -> Column:
    return Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False, default=uuid7)


# ---------------------------------------------------------------- enums

class CredentialType(str, enum.Enum):
    PASSWORD = "PASSWORD"
    OAUTH = "OAUTH"


class VerificationChannel(str, enum.Enum):
    EMAIL = "EMAIL"
    SMS = "SMS"


class DiscountType(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"
    AMOUNT = "AMOUNT"
    FREE_SHIPPING = "FREE_SHIPPING"


class PaymentGateway(str, enum.Enum):
    COD = "COD"
    RAZORPAY = "RAZORPAY"
    WALLET = "WALLET"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURN_REQUESTED = "RETURN_REQUESTED"
    RETURNED = "RETURNED"


class WalletStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"
    INACTIVE = "INACTIVE"


class TransactionType(str, enum.Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    ROLLED_BACK = "ROLLED_BACK"


class ReferenceType(str, enum.Enum):
    ORDER = "ORDER"
    REFUND = "REFUND"
    PAYMENT_GATEWAY = "PAYMENT_GATEWAY"
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"


class ActorType(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"


class ReviewStatus(str, enum.Enum):
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    FLAGGED = "FLAGGED"


class TicketCategory(str, enum.Enum):
    ORDER_ISSUE = "ORDER_ISSUE"
    PAYMENT_PROBLEM = "PAYMENT_PROBLEM"
    PRODUCT_INQUIRY = "PRODUCT_INQUIRY"
    SHIPPING_DELIVERY = "SHIPPING_DELIVERY"
    RETURNS_REFUNDS = "RETURNS_REFUNDS"
    ACCOUNT_ACCESS = "ACCOUNT_ACCESS"
    TECHNICAL_SUPPORT = "TECHNICAL_SUPPORT"
    BILLING_INQUIRY = "BILLING_INQUIRY"
    PRODUCT_DEFECT = "PRODUCT_DEFECT"
    WEBSITE_BUG = "WEBSITE_BUG"
    FEATURE_REQUEST = "FEATURE_REQUEST"
    COMPLAINT = "COMPLAINT"
    OTHER = "OTHER"


class TicketPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TicketStatus(str, enum.Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING_USER = "PENDING_USER"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class TicketMessageType(str, enum.Enum):
    MESSAGE = "MESSAGE"
    STATUS_UPDATE = "STATUS_UPDATE"
    ASSIGNMENT = "ASSIGNMENT"
    INTERNAL_NOTE = "INTERNAL_NOTE"
    RESOLUTION = "RESOLUTION"


class ResolutionType(str, enum.Enum):
    SOLVED = "SOLVED"
    WORKAROUND = "WORKAROUND"
    DUPLICATE = "DUPLICATE"
    INVALID = "INVALID"
    WONT_FIX = "WONT_FIX"
    USER_ERROR = "USER_ERROR"


class NotificationType(str, enum.Enum):
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"
    ORDER_UPDATE = "ORDER_UPDATE"
    PAYMENT_SUCCESS = "PAYMENT_SUCCESS"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    SHIPPING_UPDATE = "SHIPPING_UPDATE"
    PROMOTION = "PROMOTION"
    SYSTEM_MAINTENANCE = "SYSTEM_MAINTENANCE"
    SECURITY_ALERT = "SECURITY_ALERT"
    ADMIN_ALERT = "ADMIN_ALERT"
    INVENTORY_ALERT = "INVENTORY_ALERT"


class NotificationTarget(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    BOTH = "BOTH"


class NotificationStatus(str, enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    READ = "READ"
    FAILED = "FAILED"


class NotificationPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


# ---------------------------------------------------------------- identity

class UserRole(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="users.id", index=True, nullable=False)
    role_id: Optional[int] = Field(default=None, foreign_key="role.id", index=True, nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "role_id", name="uq_user_role_user_id_role_id"),)


class RolePermission(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    role_id: int = Field(foreign_key="role.id", index=True, nullable=False)
    permission_id: int = Field(foreign_key="permission.id", index=True, nullable=False)

    __table_args__ = (UniqueConstraint("role_id", "permission_id", name="uq_role_permission_role_id_permission_id"),)


class Users(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id_column())
    email: str = Field(sa_column=Column(String(320), nullable=False, unique=True))
    name: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    phone: Optional[str] = Field(default=None, sa_column=Column(String(20), nullable=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    email_verified_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    phone_verified_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    role_version: int = Field(default=0, nullable=False)
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))

    roles: List["Role"] = Relationship(back_populates="users", link_model=UserRole)


class Role(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(sa_column=Column(String(length=200), unique=True, nullable=False))
    description: Optional[str] = None

    users: List["Users"] = Relationship(back_populates="roles", link_model=UserRole)
    permissions: List["Permission"] = Relationship(back_populates="roles", link_model=RolePermission)


class Permission(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(sa_column=Column(String(120), unique=True, nullable=False))
    description: Optional[str] = None

    roles: List["Role"] = Relationship(back_populates="permissions", link_model=RolePermission)


class Credential(SQLModel, table=True):
    """Password hashes per user and provider. Refresh tokens live in RefreshToken."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    type: CredentialType = Field(nullable=False)
    provider: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    password_hash: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), default=now, nullable=False))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), default=now, nullable=False, onupdate=now))

    __table_args__ = (UniqueConstraint("user_id", "provider", name="uq_credential_user_provider"),)


class RefreshToken(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    token_hash: str = Field(sa_column=Column(String(128), unique=True, index=True, nullable=False))
    issued_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    revoked_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    revoked_by: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))


class VerificationCode(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    channel: VerificationChannel = Field(nullable=False)
    code_hash: str = Field(sa_column=Column(String(128), nullable=False))
    attempts: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    consumed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))


class Address(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id_column())
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    full_name: str = Field(sa_column=Column(String(128), nullable=False))
    address_line1: str = Field(sa_column=Column(String(255), nullable=False))
    address_line2: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    city: str = Field(sa_column=Column(String(100), nullable=False))
    state: str = Field(sa_column=Column(String(100), nullable=False))
    pincode: str = Field(sa_column=Column(String(6), nullable=False))
    country: str = Field(default="India", sa_column=Column(String(64), nullable=False, default="India"))
    phone_number: str = Field(sa_column=Column(String(20), nullable=False))
    is_default: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))


# ---------------------------------------------------------------- catalog

class Category(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id_column())
    name: str = Field(sa_column=Column(String(120), unique=True, nullable=False))
    slug: str = Field(sa_column=Column(String(140), unique=True, index=True, nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    parent_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("category.id", ondelete="SET NULL"), nullable=True))
    image_url: Optional[str] = Field(default=None, sa_column=Column(String(1024), nullable=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))


class Brand(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id_column())
    name: str = Field(sa_column=Column(String(120), unique=True, nullable=False))
    slug: str = Field(sa_column=Column(String(140), unique=True, index=True, nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    logo_url: Optional[str] = Field(default=None, sa_column=Column(String(1024), nullable=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))


class Supplier(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id_column())
    name: str = Field(sa_column=Column(String(160), unique=True, nullable=False))
    email: Optional[str] = Field(default=None, sa_column=Column(String(320), nullable=True))
    phone: Optional[str] = Field(default=None, sa_column=Column(String(20), nullable=True))
    address: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))


class Product(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id_column())
    name: str = Field(sa_column=Column(String(255), unique=True, nullable=False))
    slug: str = Field(sa_column=Column(String(280), unique=True, index=True, nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    category_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("category.id"), index=True, nullable=True))
    brand_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("brand.id"), index=True, nullable=True))
    supplier_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("supplier.id"), index=True, nullable=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    average_rating: float = Field(default=0.0, sa_column=Column(Float, nullable=False, default=0.0))
    reviews_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))


class ProductVariant(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id_column())
    product_id: int = Field(sa_column=Column(ForeignKey("product.id", ondelete="CASCADE"), index=True, nullable=False))
    sku_code: str = Field(sa_column=Column(String(64), unique=True, nullable=False))
    slug: str = Field(sa_column=Column(String(300), unique=True, index=True, nullable=False))
    price: int = Field(sa_column=Column(BigInteger, nullable=False))      # paise
    option_values: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False, default=list))
    # null base unit means this variant is its own stock unit
    base_unit_variant_id: Optional[int] = Field(default=None,
        sa_column=Column(ForeignKey("productvariant.id"), index=True, nullable=True))
    pack_multiplier: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    sort_order: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    average_rating: float = Field(default=0.0, sa_column=Column(Float, nullable=False, default=0.0))
    reviews_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    rating_distribution: Dict[str, int] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False, default=dict))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_variant_price_nonneg"),
        CheckConstraint("pack_multiplier >= 1", name="ck_variant_pack_multiplier_pos"),
    )


class Inventory(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    variant_id: int = Field(sa_column=Column(ForeignKey("productvariant.id", ondelete="CASCADE"), unique=True, nullable=False))
    stock_quantity: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    min_stock_level: int = Field(default=5, sa_column=Column(Integer, nullable=False, default=5))
    last_restocked_date: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    last_sold_date: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))

    __table_args__ = (CheckConstraint("stock_quantity >= 0", name="ck_inventory_stock_nonneg"),)


# ---------------------------------------------------------------- cart and coupons

class Cart(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False))
    applied_coupon_code: Optional[str] = Field(default=None, sa_column=Column(String(50), nullable=True))
    coupon_discount_amount: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))


class CartItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    cart_id: int = Field(sa_column=Column(ForeignKey("cart.id", ondelete="CASCADE"), index=True, nullable=False))
    variant_id: int = Field(sa_column=Column(ForeignKey("productvariant.id", ondelete="CASCADE"), nullable=False))
    quantity: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    price_at_addition: int = Field(sa_column=Column(BigInteger, nullable=False))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))

    __table_args__ = (
        UniqueConstraint("cart_id", "variant_id", name="uq_cart_item_cart_variant"),
        CheckConstraint("quantity >= 1", name="ck_cart_item_qty_pos"),
    )


class CouponCampaign(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id_column())
    name: str = Field(sa_column=Column(String(160), unique=True, nullable=False))
    slug: str = Field(sa_column=Column(String(180), unique=True, nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    code_prefix: str = Field(default="CPN", sa_column=Column(String(20), nullable=False, default="CPN"))
    discount_type: DiscountType = Field(nullable=False)
    discount_value: int = Field(sa_column=Column(BigInteger, nullable=False))
    min_purchase_amount: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    max_coupon_discount: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    valid_from: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    valid_until: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    max_global_usage: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    current_global_usage: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    max_usage_per_user: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    is_unique_per_user: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    eligibility_criteria: List[str] = Field(default_factory=lambda: ["NONE"], sa_column=Column(JSON, nullable=False))
    applicable_category_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False, default=list))
    applicable_variant_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False, default=list))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))

    __table_args__ = (CheckConstraint("current_global_usage >= 0", name="ck_campaign_usage_nonneg"),)


class UserCoupon(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id_column())
    campaign_id: int = Field(sa_column=Column(ForeignKey("couponcampaign.id", ondelete="CASCADE"), index=True, nullable=False))
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    coupon_code: str = Field(sa_column=Column(String(50), unique=True, index=True, nullable=False))
    current_usage_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    is_redeemed: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    redeemed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))


# ---------------------------------------------------------------- orders and payments

class Orders(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id_column())
    order_number: str = Field(sa_column=Column(String(32), unique=True, index=True, nullable=False))
    user_id: int = Field(sa_column=Column(ForeignKey("users.id"), index=True, nullable=False))
    shipping_address: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    billing_address: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    payment_gateway: PaymentGateway = Field(nullable=False)
    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING, nullable=False)
    order_status: OrderStatus = Field(default=OrderStatus.PENDING, nullable=False)
    subtotal: int = Field(sa_column=Column(BigInteger, nullable=False))
    shipping_cost: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    tax_amount: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    discount_amount: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    grand_total: int = Field(sa_column=Column(BigInteger, nullable=False))
    refunded_amount: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    applied_coupon_code: Optional[str] = Field(default=None, sa_column=Column(String(50), nullable=True))
    razorpay_order_id: Optional[str] = Field(default=None, sa_column=Column(String(64), unique=True, nullable=True))
    razorpay_payment_id: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    tracking_number: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    shipping_carrier: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    notes: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    cancelled_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    delivered_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, index=True))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))

    items: List["OrderItem"] = Relationship(back_populates="order")

    __table_args__ = (
        CheckConstraint("grand_total >= 0", name="ck_order_grand_total_nonneg"),
        CheckConstraint("refunded_amount >= 0", name="ck_order_refunded_nonneg"),
    )


class OrderItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(sa_column=Column(ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False))
    variant_id: int = Field(sa_column=Column(ForeignKey("productvariant.id"), index=True, nullable=False))
    sku_code: str = Field(sa_column=Column(String(64), nullable=False))
    product_name: str = Field(sa_column=Column(String(255), nullable=False))
    variant_options: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False, default=list))
    quantity: int = Field(sa_column=Column(Integer, nullable=False))
    price: int = Field(sa_column=Column(BigInteger, nullable=False))
    subtotal: int = Field(sa_column=Column(BigInteger, nullable=False))

    order: "Orders" = Relationship(back_populates="items")

    __table_args__ = (CheckConstraint("quantity >= 1", name="ck_order_item_qty_pos"),)


class PaymentWebhookEvent(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    provider: str = Field(sa_column=Column(String(32), nullable=False))
    provider_event_id: str = Field(sa_column=Column(String(128), nullable=False))
    event: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    payload: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    received_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    processed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    last_error: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))

    __table_args__ = (UniqueConstraint("provider", "provider_event_id", name="uq_webhook_provider_event"),)


# ---------------------------------------------------------------- wallet

class Wallet(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id_column())
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False))
    balance: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    currency: str = Field(default="INR", sa_column=Column(String(3), nullable=False, default="INR"))
    status: WalletStatus = Field(default=WalletStatus.ACTIVE, nullable=False)
    last_transaction_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    transaction_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))

    __table_args__ = (CheckConstraint("balance >= 0", name="ck_wallet_balance_nonneg"),)


class WalletTransaction(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id_column())
    wallet_id: int = Field(sa_column=Column(ForeignKey("wallet.id", ondelete="CASCADE"), index=True, nullable=False))
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    transaction_type: TransactionType = Field(nullable=False)
    amount: int = Field(sa_column=Column(BigInteger, nullable=False))
    currency: str = Field(default="INR", sa_column=Column(String(3), nullable=False, default="INR"))
    description: Optional[str] = Field(default=None, sa_column=Column(String(250), nullable=True))
    reference_type: ReferenceType = Field(nullable=False)
    reference_id: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    status: TransactionStatus = Field(default=TransactionStatus.PENDING, nullable=False)
    initiated_by_actor: ActorType = Field(default=ActorType.USER, nullable=False)
    balance_after: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    payment_method: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))
    gateway_order_id: Optional[str] = Field(default=None, sa_column=Column(String(64), unique=True, nullable=True))
    gateway_transaction_id: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    gateway_response: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    details: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    failure_reason: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, index=True))
    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    failed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))

    __table_args__ = (CheckConstraint("amount > 0", name="ck_wallet_txn_amount_pos"),)


# ---------------------------------------------------------------- reviews

class ProductReview(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id_column())
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    variant_id: int = Field(sa_column=Column(ForeignKey("productvariant.id", ondelete="CASCADE"), index=True, nullable=False))
    rating: int = Field(sa_column=Column(Integer, nullable=False))
    title: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    review_text: Optional[str] = Field(default=None, sa_column=Column(String(2000), nullable=True))
    image_urls: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False, default=list))
    is_verified_buyer: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    status: ReviewStatus = Field(default=ReviewStatus.PENDING_APPROVAL, nullable=False)
    helpful_votes: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    unhelpful_votes: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    reported_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    reviewer_display_name: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    moderation_note: Optional[str] = Field(default=None, sa_column=Column(String(500), nullable=True))
    moderated_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))

    __table_args__ = (
        UniqueConstraint("user_id", "variant_id", name="uq_review_user_variant"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
    )


class ReviewVote(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    review_id: int = Field(sa_column=Column(ForeignKey("productreview.id", ondelete="CASCADE"), index=True, nullable=False))
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False))
    is_helpful: bool = Field(sa_column=Column(Boolean, nullable=False))

    __table_args__ = (UniqueConstraint("review_id", "user_id", name="uq_review_vote_review_user"),)


class ReviewReport(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    review_id: int = Field(sa_column=Column(ForeignKey("productreview.id", ondelete="CASCADE"), index=True, nullable=False))
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False))
    reason: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))

    __table_args__ = (UniqueConstraint("review_id", "user_id", name="uq_review_report_review_user"),)


# ---------------------------------------------------------------- support

class SupportTicket(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id_column())
    ticket_number: str = Field(sa_column=Column(String(20), unique=True, index=True, nullable=False))
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    user_name: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    user_email: Optional[str] = Field(default=None, sa_column=Column(String(320), nullable=True))
    subject: str = Field(sa_column=Column(String(200), nullable=False))
    description: str = Field(sa_column=Column(String(5000), nullable=False))
    category: TicketCategory = Field(default=TicketCategory.OTHER, nullable=False)
    priority: TicketPriority = Field(default=TicketPriority.MEDIUM, nullable=False)
    status: TicketStatus = Field(default=TicketStatus.OPEN, nullable=False)
    assigned_to_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("users.id"), nullable=True))
    related_order_number: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))
    sla_response_due: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    sla_resolution_due: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    first_response_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    response_time_minutes: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    resolved_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    resolution_time_minutes: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    is_sla_breached: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    resolution_note: Optional[str] = Field(default=None, sa_column=Column(String(2000), nullable=True))
    resolution_type: Optional[ResolutionType] = Field(default=None, nullable=True)
    satisfaction_rating: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    satisfaction_feedback: Optional[str] = Field(default=None, sa_column=Column(String(1000), nullable=True))
    reopened_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    last_activity_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    closed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now))

    messages: List["TicketMessage"] = Relationship(back_populates="ticket")


class TicketMessage(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    ticket_id: int = Field(sa_column=Column(ForeignKey("supportticket.id", ondelete="CASCADE"), index=True, nullable=False))
    sender_id: int = Field(sa_column=Column(ForeignKey("users.id"), nullable=False))
    sender_role: str = Field(sa_column=Column(String(16), nullable=False))   # user / admin
    message: str = Field(sa_column=Column(String(5000), nullable=False))
    message_type: TicketMessageType = Field(default=TicketMessageType.MESSAGE, nullable=False)
    is_internal: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))

    ticket: "SupportTicket" = Relationship(back_populates="messages")


# ---------------------------------------------------------------- notifications

class Notification(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id_column())
    title: str = Field(sa_column=Column(String(200), nullable=False))
    message: str = Field(sa_column=Column(String(1000), nullable=False))
    type: NotificationType = Field(default=NotificationType.INFO, nullable=False)
    target_type: NotificationTarget = Field(default=NotificationTarget.USER, nullable=False)
    recipient_user_id: Optional[int] = Field(default=None,
        sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=True))
    is_broadcast: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    priority: NotificationPriority = Field(default=NotificationPriority.MEDIUM, nullable=False)
    status: NotificationStatus = Field(default=NotificationStatus.SENT, nullable=False)
    is_read: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    read_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    action_url: Optional[str] = Field(default=None, sa_column=Column(String(500), nullable=True))
    related_entity_type: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))
    related_entity_id: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    sender_type: ActorType = Field(default=ActorType.SYSTEM, nullable=False)
    expires_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=now, index=True))


class NotificationAudience(SQLModel, table=True):
    """Role names a broadcast targets."""
    id: Optional[int] = Field(default=None, primary_key=True)
    notification_id: int = Field(sa_column=Column(ForeignKey("notification.id", ondelete="CASCADE"), index=True, nullable=False))
    role_name: str = Field(sa_column=Column(String(200), nullable=False))

    __table_args__ = (UniqueConstraint("notification_id", "role_name", name="uq_notification_audience"),)


class NotificationRead(SQLModel, table=True):
    """Per user read receipts for broadcasts."""
    id: Optional[int] = Field(default=None, primary_key=True)
    notification_id: int = Field(sa_column=Column(ForeignKey("notification.id", ondelete="CASCADE"), index=True, nullable=False))
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False))
    read_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))

    __table_args__ = (UniqueConstraint("notification_id", "user_id", name="uq_notification_read_user"),)


# ---------------------------------------------------------------- favorites

class Favorite(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    variant_id: int = Field(sa_column=Column(ForeignKey("productvariant.id", ondelete="CASCADE"), nullable=False))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))

    __table_args__ = (UniqueConstraint("user_id", "variant_id", name="uq_favorite_user_variant"),)
