"""
Marketplace SQLAlchemy Models
All database entities for the customer / service provider / admin marketplace.
"""

import uuid
from datetime import datetime, timezone

import bcrypt
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import (
    Column, String, Float, Boolean, Integer, Text, Date, DateTime, ForeignKey,
    CheckConstraint, UniqueConstraint, Index, func,
)
from sqlalchemy.orm import relationship

db = SQLAlchemy()

ROLES = ("admin", "service_provider", "customer")
BOOKING_STATUSES = ("pending", "confirmed", "completed", "cancelled")
ORDER_STATUSES = ("pending", "processing", "shipped", "completed", "cancelled")
RENTAL_STATUSES = ("pending", "active", "completed", "cancelled")

# Free-text columns store HTML-escaped input. One raw character escapes to at
# most six (&#x27; &quot; &#x2F;), so widths and length checks on those
# columns are the raw limit times this factor.
ESCAPED_WIDTH = 6


def escaped(limit):
    return limit * ESCAPED_WIDTH


def generate_uuid():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


# ---------------------------------------------------------------------------
# User (auth identity + profile)
# ---------------------------------------------------------------------------
class User(db.Model):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(escaped(100)), nullable=False, default="")
    phone = Column(String(escaped(20)), nullable=True)
    address = Column(Text, nullable=True)
    zip_code = Column(String(escaped(20)), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    roles = relationship("UserRole", back_populates="user", cascade="all, delete-orphan", lazy="selectin")
    provider_profile = relationship("ServiceProvider", back_populates="user", uselist=False)

    def set_password(self, password):
        self.password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

    def check_password(self, password):
        if not self.password_hash:
            return False
        return bcrypt.checkpw(password.encode("utf-8"), self.password_hash.encode("utf-8"))

    @property
    def role_names(self):
        return sorted(r.role for r in self.roles)

    def has_role(self, role):
        return any(r.role == role for r in self.roles)

    def to_dict(self, include_private=False):
        data = {
            "id": self.id,
            "full_name": self.full_name,
            "roles": self.role_names,
            "created_at": _iso(self.created_at),
        }
        if include_private:
            data.update({
                "email": self.email,
                "phone": self.phone,
                "address": self.address,
                "zip_code": self.zip_code,
                "updated_at": _iso(self.updated_at),
            })
        return data


# ---------------------------------------------------------------------------
# UserRole
# ---------------------------------------------------------------------------
class UserRole(db.Model):
    __tablename__ = "user_roles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False)

    user = relationship("User", back_populates="roles")

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
        CheckConstraint(
            "role IN ('admin', 'service_provider', 'customer')",
            name="ck_user_roles_role",
        ),
    )

    def to_dict(self):
        return {"id": self.id, "user_id": self.user_id, "role": self.role}


# ---------------------------------------------------------------------------
# ServiceProvider
# ---------------------------------------------------------------------------
class ServiceProvider(db.Model):
    __tablename__ = "service_providers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    business_name = Column(String(escaped(200)), nullable=False)
    description = Column(Text, nullable=True)
    address = Column(String(escaped(500)), nullable=False)
    zip_code = Column(String(20), nullable=False, index=True)
    profile_image_url = Column(Text, nullable=True)
    background_image_url = Column(Text, nullable=True)
    payment_qr_url = Column(Text, nullable=True)
    valid_id_path = Column(Text, nullable=True)  # private bucket object, never public
    rating = Column(Float, default=0.0)
    total_reviews = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="provider_profile")
    services = relationship("Service", back_populates="provider", lazy="dynamic", cascade="all, delete-orphan")
    products = relationship("Product", back_populates="provider", lazy="dynamic", cascade="all, delete-orphan")
    equipment = relationship("Equipment", back_populates="provider", lazy="dynamic", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(f"length(business_name) >= 2 AND length(business_name) <= {escaped(200)}",
                        name="ck_providers_business_name_length"),
        CheckConstraint(
            f"description IS NULL OR (length(description) >= 10 AND length(description) <= {escaped(2000)})",
            name="ck_providers_description_length",
        ),
        CheckConstraint(f"length(address) >= 5 AND length(address) <= {escaped(500)}",
                        name="ck_providers_address_length"),
        CheckConstraint("length(zip_code) >= 4 AND length(zip_code) <= 20",
                        name="ck_providers_zip_length"),
    )

    def refresh_rating(self):
        """Recompute the rating aggregate from this provider's reviews."""
        avg, count = (
            db.session.query(func.avg(Review.rating), func.count(Review.id))
            .filter(Review.provider_id == self.id)
            .one()
        )
        self.rating = round(float(avg), 1) if avg is not None else 0.0
        self.total_reviews = count or 0

    def to_dict(self, include_private=False):
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "business_name": self.business_name,
            "description": self.description,
            "address": self.address,
            "zip_code": self.zip_code,
            "profile_image_url": self.profile_image_url,
            "background_image_url": self.background_image_url,
            "payment_qr_url": self.payment_qr_url,
            "rating": self.rating or 0.0,
            "total_reviews": self.total_reviews or 0,
            "is_active": bool(self.is_active),
            "created_at": _iso(self.created_at),
        }
        if include_private:
            data["has_valid_id"] = bool(self.valid_id_path)
            data["valid_id_path"] = self.valid_id_path
        return data


# ---------------------------------------------------------------------------
# Catalog: Service / Product / Equipment (+ image galleries)
# ---------------------------------------------------------------------------
class Service(db.Model):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    provider_id = Column(String(36), ForeignKey("service_providers.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String(escaped(200)), nullable=False)
    description = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    image_url = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)

    provider = relationship("ServiceProvider", back_populates="services")
    images = relationship("ServiceImage", cascade="all, delete-orphan", order_by="ServiceImage.display_order")

    __table_args__ = (
        CheckConstraint("price > 0 AND price <= 999999", name="ck_services_price_range"),
        CheckConstraint("duration_minutes > 0 AND duration_minutes <= 1440", name="ck_services_duration_range"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "provider_id": self.provider_id,
            "name": self.name,
            "description": self.description,
            "duration_minutes": self.duration_minutes,
            "price": self.price,
            "image_url": self.image_url,
            "images": [i.to_dict() for i in self.images],
            "is_active": bool(self.is_active),
            "created_at": _iso(self.created_at),
        }


class Product(db.Model):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    provider_id = Column(String(36), ForeignKey("service_providers.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String(escaped(200)), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    stock_quantity = Column(Integer, default=0)
    image_url = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)

    provider = relationship("ServiceProvider", back_populates="products")
    images = relationship("ProductImage", cascade="all, delete-orphan", order_by="ProductImage.display_order")

    __table_args__ = (
        CheckConstraint("price > 0 AND price <= 999999", name="ck_products_price_range"),
        CheckConstraint("stock_quantity >= 0 AND stock_quantity <= 1000000", name="ck_products_stock_range"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "provider_id": self.provider_id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "stock_quantity": self.stock_quantity or 0,
            "image_url": self.image_url,
            "images": [i.to_dict() for i in self.images],
            "is_active": bool(self.is_active),
            "created_at": _iso(self.created_at),
        }


class Equipment(db.Model):
    __tablename__ = "equipment"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    provider_id = Column(String(36), ForeignKey("service_providers.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String(escaped(200)), nullable=False)
    description = Column(Text, nullable=True)
    price_per_day = Column(Float, nullable=False)
    image_url = Column(Text, nullable=True)
    is_available = Column(Boolean, default=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)

    provider = relationship("ServiceProvider", back_populates="equipment")
    images = relationship("EquipmentImage", cascade="all, delete-orphan", order_by="EquipmentImage.display_order")

    __table_args__ = (
        CheckConstraint("price_per_day > 0 AND price_per_day <= 99999", name="ck_equipment_price_range"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "provider_id": self.provider_id,
            "name": self.name,
            "description": self.description,
            "price_per_day": self.price_per_day,
            "image_url": self.image_url,
            "images": [i.to_dict() for i in self.images],
            "is_available": bool(self.is_available),
            "is_active": bool(self.is_active),
            "created_at": _iso(self.created_at),
        }


class ServiceImage(db.Model):
    __tablename__ = "service_images"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    service_id = Column(String(36), ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(Text, nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    def to_dict(self):
        return {"id": self.id, "image_url": self.image_url, "display_order": self.display_order}


class ProductImage(db.Model):
    __tablename__ = "product_images"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(Text, nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    def to_dict(self):
        return {"id": self.id, "image_url": self.image_url, "display_order": self.display_order}


class EquipmentImage(db.Model):
    __tablename__ = "equipment_images"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    equipment_id = Column(String(36), ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(Text, nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    def to_dict(self):
        return {"id": self.id, "image_url": self.image_url, "display_order": self.display_order}


# ---------------------------------------------------------------------------
# Booking
# ---------------------------------------------------------------------------
class Booking(db.Model):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    customer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("service_providers.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    booking_date = Column(Date, nullable=False)
    booking_time = Column(String(5), nullable=False)  # "HH:MM", matched exactly against the slot grid
    customer_phone = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(DateTime, default=utcnow)

    customer = relationship("User")
    provider = relationship("ServiceProvider")
    service = relationship("Service")

    __table_args__ = (
        # One live booking per slot. Cancelled rows free the slot again.
        Index(
            "uq_bookings_active_slot",
            "provider_id", "booking_date", "booking_time",
            unique=True,
            sqlite_where=db.text("status != 'cancelled'"),
            postgresql_where=db.text("status != 'cancelled'"),
        ),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.full_name if self.customer else None,
            "provider_id": self.provider_id,
            "provider_name": self.provider.business_name if self.provider else None,
            "service_id": self.service_id,
            "service_name": self.service.name if self.service else None,
            "booking_date": _iso(self.booking_date),
            "booking_time": self.booking_time,
            "customer_phone": self.customer_phone,
            "notes": self.notes,
            "status": self.status,
            "created_at": _iso(self.created_at),
        }


# ---------------------------------------------------------------------------
# ProductOrder
# ---------------------------------------------------------------------------
class ProductOrder(db.Model):
    __tablename__ = "product_orders"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    customer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("service_providers.id", ondelete="CASCADE"), nullable=True, index=True)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    total_price = Column(Float, nullable=False)
    delivery_address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(DateTime, default=utcnow)

    customer = relationship("User")
    product = relationship("Product")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_product_orders_quantity"),
        CheckConstraint(
            "status IN ('pending', 'processing', 'shipped', 'completed', 'cancelled')",
            name="ck_product_orders_status",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.full_name if self.customer else None,
            "provider_id": self.provider_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "total_price": self.total_price,
            "delivery_address": self.delivery_address,
            "notes": self.notes,
            "status": self.status,
            "created_at": _iso(self.created_at),
        }


# ---------------------------------------------------------------------------
# EquipmentRental
# ---------------------------------------------------------------------------
class EquipmentRental(db.Model):
    __tablename__ = "equipment_rentals"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    customer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("service_providers.id", ondelete="CASCADE"), nullable=True, index=True)
    equipment_id = Column(String(36), ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False)
    rental_start_date = Column(Date, nullable=False)
    rental_end_date = Column(Date, nullable=False)
    total_price = Column(Float, nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(DateTime, default=utcnow)

    customer = relationship("User")
    equipment = relationship("Equipment")

    __table_args__ = (
        CheckConstraint("rental_end_date > rental_start_date", name="ck_rentals_date_order"),
        CheckConstraint(
            "status IN ('pending', 'active', 'completed', 'cancelled')",
            name="ck_rentals_status",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.full_name if self.customer else None,
            "provider_id": self.provider_id,
            "equipment_id": self.equipment_id,
            "equipment_name": self.equipment.name if self.equipment else None,
            "rental_start_date": _iso(self.rental_start_date),
            "rental_end_date": _iso(self.rental_end_date),
            "total_price": self.total_price,
            "notes": self.notes,
            "status": self.status,
            "created_at": _iso(self.created_at),
        }


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------
class Review(db.Model):
    __tablename__ = "reviews"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    provider_id = Column(String(36), ForeignKey("service_providers.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    customer = relationship("User")
    provider = relationship("ServiceProvider")

    __table_args__ = (
        UniqueConstraint("customer_id", "provider_id", name="uq_reviews_customer_provider"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "provider_id": self.provider_id,
            "provider_name": self.provider.business_name if self.provider else None,
            "customer_id": self.customer_id,
            "customer_name": self.customer.full_name if self.customer else None,
            "booking_id": self.booking_id,
            "rating": self.rating,
            "comment": self.comment,
            "created_at": _iso(self.created_at),
        }


# ---------------------------------------------------------------------------
# Conversation / ChatMessage
# ---------------------------------------------------------------------------
class Conversation(db.Model):
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    customer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("service_providers.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)

    customer = relationship("User")
    provider = relationship("ServiceProvider")
    messages = relationship("ChatMessage", back_populates="conversation", lazy="dynamic",
                            cascade="all, delete-orphan", order_by="ChatMessage.created_at")

    __table_args__ = (
        UniqueConstraint("customer_id", "provider_id", name="uq_conversations_customer_provider"),
    )

    def to_dict(self, last_message=None):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.full_name if self.customer else None,
            "provider_id": self.provider_id,
            "provider_name": self.provider.business_name if self.provider else None,
            "provider_user_id": self.provider.user_id if self.provider else None,
            "last_message": last_message.to_dict() if last_message else None,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class ChatMessage(db.Model):
    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    conversation_id = Column(String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)

    conversation = relationship("Conversation", back_populates="messages")

    __table_args__ = (
        Index("ix_chat_messages_conversation_created", "conversation_id", "created_at"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "sender_id": self.sender_id,
            "message": self.message,
            "read": bool(self.read),
            "created_at": _iso(self.created_at),
        }
