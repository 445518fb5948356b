import uuid
from sqlalchemy import ForeignKey, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID
from app.db.session import Base
from app.models.common import PublicIdMixin, UUIDMixin, TimestampMixin
from app.registry.entities import register_entity

class DashboardWidget(Base, UUIDMixin, PublicIdMixin, TimestampMixin):
    __tablename__ = "dashboard_widgets"
    __public_id_prefix__ = "widget"
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    component: Mapped[str] = mapped_column(String(200), nullable=False)
    grid_options: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    options: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    dashboard_uuid: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("dashboards.id"), nullable=False)

    dashboard = relationship("Dashboard", back_populates="widgets")

# Widgets keep one serializer across versions and caller scopes.
register_entity(
    DashboardWidget,
    filterable=("name", "component", "dashboard_uuid", "created_at"),
    searchable=("name", "component"),
    serializer="serializers.DashboardWidgetSerializer",
)
