import secrets
import string
import uuid
from datetime import datetime, timezone
from sqlalchemy import DateTime, String, event
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

PUBLIC_ID_ALPHABET = string.ascii_letters + string.digits
PUBLIC_ID_LENGTH = 7

def utcnow():
    return datetime.now(timezone.utc)

def generate_public_id(prefix: str) -> str:
    suffix = "".join(secrets.choice(PUBLIC_ID_ALPHABET) for _ in range(PUBLIC_ID_LENGTH))
    return f"{prefix}_{suffix}"

def is_public_id(value) -> bool:
    if not isinstance(value, str) or "_" not in value:
        return False
    prefix, _, suffix = value.rpartition("_")
    return bool(prefix) and len(suffix) == PUBLIC_ID_LENGTH and suffix.isalnum()

class UUIDMixin:
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

class PublicIdMixin:
    __public_id_prefix__ = "rec"

    public_id: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)


@event.listens_for(PublicIdMixin, "before_insert", propagate=True)
def _assign_public_id(mapper, connection, target):
    if not getattr(target, "public_id", None):
        target.public_id = generate_public_id(type(target).__public_id_prefix__)
