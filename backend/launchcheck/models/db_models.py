"""
Launch Checklist Engine - SQLAlchemy ORM Models

One current audit per shop+product (replaced on every run) and an
append-only product history log.
"""
from datetime import datetime
from sqlalchemy import (
    Boolean, Column, DateTime, Enum as SQLEnum, ForeignKey, Integer, JSON, String, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..database import Base
from .domain import AuditStatus, ChangeType, FixType, RuleStatus


class ShopDB(Base):
    """An installed shop with its remediation defaults and billing counters."""
    __tablename__ = "shops"

    id = Column(String(36), primary_key=True)  # UUID
    shop_domain = Column(String(255), unique=True, nullable=False, index=True)
    access_token = Column(String(255), nullable=True)

    # ==========================================================================
    # REMEDIATION DEFAULTS
    # ==========================================================================
    default_collection_id = Column(String(255), nullable=True)
    default_tags = Column(JSON, nullable=True, default=list)

    # Re-audit automatically when the catalog reports a product was created or changed
    auto_run_on_create = Column(Boolean, nullable=False, default=True)
    auto_run_on_update = Column(Boolean, nullable=False, default=True)

    # ==========================================================================
    # BILLING / AI CREDITS
    # ==========================================================================
    plan = Column(String(20), nullable=False, default="free")  # free | starter | pro
    trial_ends_at = Column(DateTime, nullable=True)
    is_dev_store = Column(Boolean, nullable=False, default=False)
    openai_api_key = Column(String(255), nullable=True)  # shop's own key, fallback after app credits
    ai_credits_used = Column(Integer, nullable=False, default=0)
    own_key_credits_used = Column(Integer, nullable=False, default=0)
    ai_credits_reset_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    checklist_items = relationship(
        "ChecklistItemDB", back_populates="shop", cascade="all, delete-orphan",
        order_by="ChecklistItemDB.position",
    )


class ChecklistItemDB(Base):
    """A rule definition as configured for a shop."""
    __tablename__ = "checklist_items"

    id = Column(String(36), primary_key=True)
    shop_id = Column(String(36), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)
    key = Column(String(64), nullable=False)  # e.g. "min_images", "seo_title"
    label = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    config_json = Column(Text, nullable=False, default="{}")
    weight = Column(Integer, nullable=False, default=1)
    fix_type = Column(SQLEnum(FixType), nullable=False, default=FixType.MANUAL)
    target_field = Column(String(64), nullable=True)
    is_enabled = Column(Boolean, nullable=False, default=True)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    shop = relationship("ShopDB", back_populates="checklist_items")


class ProductAuditDB(Base):
    """Current audit snapshot for a product. Superseded by the next run."""
    __tablename__ = "product_audits"
    __table_args__ = (UniqueConstraint("shop_id", "product_id", name="uq_product_audit_shop_product"),)

    id = Column(String(36), primary_key=True)
    shop_id = Column(String(36), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(255), nullable=False, index=True)  # catalog GID
    product_title = Column(String(512), nullable=False, default="")
    product_image = Column(String(1024), nullable=True)
    status = Column(SQLEnum(AuditStatus), nullable=False, default=AuditStatus.INCOMPLETE)
    score = Column(Integer, nullable=False, default=0)
    passed_count = Column(Integer, nullable=False, default=0)
    failed_count = Column(Integer, nullable=False, default=0)
    total_count = Column(Integer, nullable=False, default=0)
    auto_fixable_count = Column(Integer, nullable=False, default=0)
    ai_fixable_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship(
        "ProductAuditItemDB", back_populates="audit", cascade="all, delete-orphan",
        order_by="ProductAuditItemDB.position",
    )


class ProductAuditItemDB(Base):
    """One rule result inside the current audit."""
    __tablename__ = "product_audit_items"

    id = Column(String(36), primary_key=True)
    audit_id = Column(String(36), ForeignKey("product_audits.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(String(36), ForeignKey("checklist_items.id", ondelete="CASCADE"), nullable=False)
    rule_key = Column(String(64), nullable=False)
    label = Column(String(255), nullable=False, default="")
    position = Column(Integer, nullable=False, default=0)
    status = Column(SQLEnum(RuleStatus), nullable=False)
    details = Column(Text, nullable=True)
    can_auto_fix = Column(Boolean, nullable=False, default=False)
    fix_type = Column(SQLEnum(FixType), nullable=False, default=FixType.MANUAL)
    target_field = Column(String(64), nullable=True)
    weight = Column(Integer, nullable=False, default=1)

    audit = relationship("ProductAuditDB", back_populates="items")


class ProductHistoryDB(Base):
    """
    Append-only change log per product.

    Every successful field mutation is recorded with its previous and new
    value so it can be reverted by hand later. Rows are never updated.
    """
    __tablename__ = "product_history"

    id = Column(String(36), primary_key=True)
    shop_id = Column(String(36), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(255), nullable=False, index=True)
    product_title = Column(String(512), nullable=False, default="")
    change_type = Column(SQLEnum(ChangeType), nullable=False)

    # Audit entries
    score = Column(Integer, nullable=True)
    passed_count = Column(Integer, nullable=True)
    failed_count = Column(Integer, nullable=True)

    # Fix entries
    changed_field = Column(String(64), nullable=True)
    previous_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)

    description = Column(Text, nullable=True)
    extra = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
