from sqlalchemy import Column, Integer, String, Float, DateTime, Text, ForeignKey, Boolean, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from .database import Base
import enum
import uuid


# --- Enums (stored as VARCHAR so adding values never needs a migration) ---

class Plan(str, enum.Enum):
    FREE = "free"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class QuoteMode(str, enum.Enum):
    INDIVIDUAL = "individual"
    BATCH = "batch"


class ProjectStatus(str, enum.Enum):
    WAITING = "waiting"
    SENT = "sent"
    ACCEPTED = "accepted"


class MaterialCategory(str, enum.Enum):
    FABRIC = "fabric"
    ACCESSORY = "accessory"
    PRINT = "print"


class PublicOrderStatus(str, enum.Enum):
    PENDING_PAYMENT = "pending_payment"
    PAYMENT_VERIFIED = "payment_verified"
    IN_PRODUCTION = "in_production"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


def new_document_id() -> str:
    """Opaque document id. Hex only: confirmation tokens join ids with '_'."""
    return uuid.uuid4().hex


class User(Base):
    """Workshop account: owns projects, material catalog and public orders."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    name = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    phone = Column(String, nullable=True)
    tax_id = Column(String, nullable=True)
    tax_percentage = Column(Float, default=0.0)
    logo_url = Column(String, nullable=True)
    qr_code_url = Column(String, nullable=True)  # Payment QR shown on the public order page
    conditions = Column(Text, nullable=True)
    plan = Column(String, default=Plan.FREE.value)
    is_active = Column(Boolean, default=True)

    # Email settings
    email_sender_name = Column(String, nullable=True)
    email_reply_to = Column(String, nullable=True)
    notify_workshop_on_new_order = Column(Boolean, default=True)
    send_confirmation_to_customer = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    auth_tokens = relationship("AuthToken", back_populates="user", cascade="all, delete-orphan")
    projects = relationship("Project", back_populates="user", cascade="all, delete-orphan")
    materials = relationship("CatalogMaterial", back_populates="user", cascade="all, delete-orphan")
    public_orders = relationship("PublicOrder", back_populates="user", cascade="all, delete-orphan")


class AuthToken(Base):
    """JWT refresh token storage: access tokens are stateless."""
    __tablename__ = "auth_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    token_hash = Column(String, nullable=False)
    token_type = Column(String, default="refresh")
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="auth_tokens")


class CatalogMaterial(Base):
    """Per-workshop material catalog (fabrics, accessories, prints)."""
    __tablename__ = "catalog_materials"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category = Column(String, nullable=False)  # MaterialCategory value
    name = Column(String, nullable=False)
    price = Column(Float, default=0.0)
    unit = Column(String, default="m")  # 'm' | 'piece' | 'fixed' | 'kg'
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="materials")


class Project(Base):
    """
    A quote/configuration document.

    line_items is stored as JSON and validated into schemas.LineItem on read.
    version_id drives optimistic concurrency: any write to the row (including
    the fittings_revision bump done by every fitting write) invalidates
    in-flight consumption transactions, which then retry from scratch.
    """
    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=new_document_id)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    client_name = Column(String, nullable=False)
    project_name = Column(String, nullable=False)
    quote_mode = Column(String, nullable=False, default=QuoteMode.INDIVIDUAL.value)
    line_items = Column(JSON, default=list)
    specific_conditions = Column(JSON, default=dict)  # validity, delivery_time, delivery_place, quote_date
    status = Column(String, default=ProjectStatus.WAITING.value)

    # Consumption aggregate: written only by consumption.recalculate_consumption
    total_fabric_length = Column(Float, default=0.0)
    total_fabric_cost = Column(Float, default=0.0)

    fittings_revision = Column(Integer, nullable=False, default=0)
    version_id = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    user = relationship("User", back_populates="projects")
    fittings = relationship("Fitting", back_populates="project", cascade="all, delete-orphan")


class Fitting(Base):
    """A participant's recorded sizes for a project. Confirmed at most once."""
    __tablename__ = "fittings"

    id = Column(String, primary_key=True, default=new_document_id)
    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    person_name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    sizes = Column(JSON, default=dict)  # {garment_id: size_label}
    confirmed = Column(Boolean, default=False)
    confirmed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project", back_populates="fittings")


class PublicOrder(Base):
    """Order placed from a workshop's public link, paid by QR transfer."""
    __tablename__ = "public_orders"

    id = Column(String, primary_key=True, default=new_document_id)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=False)
    customer_phone = Column(String, nullable=False)
    college = Column(String, nullable=False)
    items = Column(JSON, default=list)
    status = Column(String, default=PublicOrderStatus.PENDING_PAYMENT.value, index=True)
    total_amount = Column(Float, default=0.0)
    payment_proof_url = Column(String, nullable=False)
    admin_notes = Column(Text, nullable=True)
    payment_verified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="public_orders")
