from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base
from app.models.common import PublicIdMixin, UUIDMixin, TimestampMixin
from app.registry.entities import register_entity

class Dashboard(Base, UUIDMixin, PublicIdMixin, TimestampMixin):
    __tablename__ = "dashboards"
    __public_id_prefix__ = "dashboard"
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    widgets = relationship("DashboardWidget", back_populates="dashboard", cascade="all, delete-orphan")

register_entity(Dashboard, filterable=("name", "created_at"), searchable=("name",))
