from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base
from app.models.common import PublicIdMixin, UUIDMixin, TimestampMixin
from app.registry.entities import register_entity

class Contact(Base, UUIDMixin, PublicIdMixin, TimestampMixin):
    __tablename__ = "contacts"
    __public_id_prefix__ = "contact"
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    type: Mapped[str] = mapped_column(String(40), default="customer", nullable=False)

    orders = relationship("Order", back_populates="customer")

register_entity(
    Contact,
    filterable=("public_id", "name", "email", "phone", "age", "type", "created_at", "updated_at"),
    searchable=("name", "email", "phone"),
)
