from sqlalchemy import (
    Column, String, Boolean, Date, DateTime, Float, func, UniqueConstraint,
)
from ..database import Base, new_id


class MenuGroup(Base):
    """Category label settings. Products reference a group by id; the label is snapshotted into metrics."""
    __tablename__ = "menu_groups"

    id           = Column(String(64), primary_key=True, default=new_id)
    workspace_id = Column(String(64), nullable=False, index=True)
    label        = Column(String(200), nullable=False)
    color        = Column(String(20))
    created_at   = Column(DateTime, server_default=func.now(), nullable=False)


class Product(Base):
    """Canonical catalog entry. Indexed per run by normalized name and by POS code."""
    __tablename__ = "products"

    id                 = Column(String(64), primary_key=True, default=new_id)
    workspace_id       = Column(String(64), nullable=False, index=True)
    name               = Column(String(500), nullable=False)
    category_id        = Column(String(64))            # menu_groups.id (not enforced)
    subcategory_id     = Column(String(64))
    is_extra           = Column(Boolean, default=False, nullable=False)
    pos_code           = Column(String(100))
    default_unit_price = Column(Float)
    active             = Column(Boolean, default=True, nullable=False)
    active_from        = Column(Date)
    active_to          = Column(Date)
    created_at         = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at         = Column(DateTime, onupdate=func.now())

    def __repr__(self) -> str:
        return f"<Product {self.id} {self.name!r}>"


class ProductAlly(Base):
    """
    Global, highest-priority override: normalized raw sales name → product.
    Consulted before every other resolution strategy.
    """
    __tablename__ = "product_allies"

    id              = Column(String(64), primary_key=True, default=new_id)
    sales_name      = Column(String(500), nullable=False)
    normalized_name = Column(String(500), nullable=False, unique=True)
    product_id      = Column(String(64), nullable=False)
    created_at      = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at      = Column(DateTime, onupdate=func.now())


class ProductMapping(Base):
    """
    Workspace-scoped saved mapping: raw report name → product.
    Lower priority than allies; seeded from the manual mapping of processed reports.
    """
    __tablename__ = "product_mappings"

    id                    = Column(String(64), primary_key=True, default=new_id)
    workspace_id          = Column(String(64), nullable=False)
    unmapped_product_name = Column(String(500), nullable=False)
    product_id            = Column(String(64), nullable=False)
    created_at            = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at            = Column(DateTime, onupdate=func.now())

    __table_args__ = (UniqueConstraint("workspace_id", "unmapped_product_name"),)
