"""
Tenant and Scrapyard database models.

Tenants are the scrapyard businesses whose drivers and pickups are isolated
from each other. Scrapyards are the physical yards a tenant operates.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from pickup_backend.app.db.session import Base


class Tenant(Base):
    """Tenant (scrapyard business) model."""
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Tenant(id={self.id}, name='{self.name}')>"


class Scrapyard(Base):
    """Scrapyard model. Read-only for the assignment workflow."""
    __tablename__ = "scrapyards"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id'), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Scrapyard(id={self.id}, tenant_id={self.tenant_id}, name='{self.name}')>"
