from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import Any

from sqlalchemy.inspection import inspect as sa_inspect

from app.core.errors import UnknownEntityType

ArtifactRef = Any  # registry reference string or an artifact class


def normalize_resource_name(name: str) -> str:
    raw = (name or "").strip().replace("-", "_")
    if not raw:
        return ""
    chars: list[str] = []
    for index, ch in enumerate(raw):
        if ch.isupper() and index > 0 and raw[index - 1].isalnum() and raw[index - 1] != "_":
            chars.append("_")
        chars.append(ch.lower())
    return "".join(chars)


def singularize(word: str) -> str:
    if word.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if word.endswith(("sses", "shes", "ches", "xes")):
        return word[:-2]
    if word.endswith("s") and not word.endswith(("ss", "us", "is")):
        return word[:-1]
    return word


def humanize(identifier: str) -> str:
    words = [token for token in normalize_resource_name(identifier).split("_") if token]
    if not words:
        return "Resource"
    phrase = " ".join(words)
    return phrase[:1].upper() + phrase[1:]


@dataclass(frozen=True)
class EntityDescriptor:
    entity_type: str
    model: type
    table_name: str
    filterable_fields: frozenset[str] = frozenset()
    searchable_fields: tuple[str, ...] = ()
    timestamp_field: str = "created_at"
    serializer_override: ArtifactRef | None = None
    validator_override: ArtifactRef | None = None
    filter_override: ArtifactRef | None = None
    public_id_field: str | None = "public_id"
    columns: tuple[str, ...] = field(default=())

    @property
    def plural_name(self) -> str:
        return self.table_name

    @property
    def singular_name(self) -> str:
        head, _, tail = self.table_name.rpartition("_")
        tail = singularize(tail)
        return f"{head}_{tail}" if head else tail

    @property
    def label(self) -> str:
        return humanize(self.singular_name)

    @cached_property
    def relations(self) -> frozenset[str]:
        # Read lazily: mappers with string relationship targets configure on first access.
        return frozenset(sa_inspect(self.model).relationships.keys())

    def sortable_fields(self) -> frozenset[str]:
        return self.filterable_fields | {self.timestamp_field}


class EntityRegistry:
    """Process-wide entity type -> descriptor map. Written during boot, read-only afterwards."""

    def __init__(self):
        self._descriptors: dict[str, EntityDescriptor] = {}
        self._resource_names: dict[str, str] = {}
        self._frozen = False

    def register(self, entity_type: str, descriptor: EntityDescriptor) -> EntityDescriptor:
        if self._frozen:
            raise RuntimeError(f'Entity registry is frozen; cannot register "{entity_type}"')
        if entity_type in self._descriptors:
            raise ValueError(f'Entity type "{entity_type}" is already registered')
        self._descriptors[entity_type] = descriptor
        for alias in {descriptor.table_name, descriptor.singular_name, normalize_resource_name(entity_type)}:
            self._resource_names.setdefault(alias, entity_type)
        return descriptor

    def describe(self, entity_type: str) -> EntityDescriptor:
        descriptor = self._descriptors.get(entity_type)
        if descriptor is None:
            raise UnknownEntityType(entity_type)
        return descriptor

    def for_resource(self, resource_name: str) -> EntityDescriptor:
        entity_type = self._resource_names.get(normalize_resource_name(resource_name))
        if entity_type is None:
            raise UnknownEntityType(resource_name)
        return self._descriptors[entity_type]

    def entity_types(self) -> list[str]:
        return sorted(self._descriptors)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen


entity_registry = EntityRegistry()


def build_descriptor(
    model: type,
    *,
    entity_type: str | None = None,
    filterable: tuple[str, ...] | list[str] = (),
    searchable: tuple[str, ...] | list[str] = (),
    timestamp_field: str = "created_at",
    serializer: ArtifactRef | None = None,
    validator: ArtifactRef | None = None,
    filter: ArtifactRef | None = None,
) -> EntityDescriptor:
    columns = tuple(model.__table__.columns.keys())
    unknown = sorted((set(filterable) | set(searchable)) - set(columns))
    if unknown:
        raise ValueError(f"{model.__name__}: unknown columns declared as filterable/searchable: {', '.join(unknown)}")
    if timestamp_field not in columns:
        raise ValueError(f'{model.__name__}: timestamp field "{timestamp_field}" is not a column')
    return EntityDescriptor(
        entity_type=entity_type or model.__name__,
        model=model,
        table_name=model.__tablename__,
        filterable_fields=frozenset(filterable),
        searchable_fields=tuple(searchable),
        timestamp_field=timestamp_field,
        serializer_override=serializer,
        validator_override=validator,
        filter_override=filter,
        public_id_field="public_id" if "public_id" in columns else None,
        columns=columns,
    )


def register_entity(model: type, *, registry: EntityRegistry | None = None, **options) -> EntityDescriptor:
    descriptor = build_descriptor(model, **options)
    return (registry or entity_registry).register(descriptor.entity_type, descriptor)
