import uuid
from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID
from app.db.session import Base
from app.models.common import PublicIdMixin, UUIDMixin, TimestampMixin
from app.registry.entities import register_entity

class Order(Base, UUIDMixin, PublicIdMixin, TimestampMixin):
    __tablename__ = "orders"
    __public_id_prefix__ = "order"
    customer_uuid: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("contacts.id"), nullable=True)
    status: Mapped[str] = mapped_column(String(40), default="created", nullable=False)
    total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    customer = relationship("Contact", back_populates="orders")

register_entity(
    Order,
    filterable=("public_id", "customer_uuid", "status", "total", "currency", "created_at", "updated_at"),
    searchable=("public_id", "status", "notes"),
)
