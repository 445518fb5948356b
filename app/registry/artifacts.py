from __future__ import annotations

import importlib
import logging
import pkgutil
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable

from app.artifacts.base import BaseSerializer, BaseValidator
from app.core.config import settings
from app.core.errors import ArtifactConstructionError
from app.registry.entities import EntityDescriptor, EntityRegistry, entity_registry

_LOG = logging.getLogger("app.resolver")

INTERNAL_SEGMENT = "Internal"
# Only mutations pick action-specific validators; the rest share one cached binding.
VALIDATED_ACTIONS = ("create", "update")


class ArtifactKind(str, Enum):
    SERIALIZER = "serializer"
    VALIDATOR = "validator"
    FILTER = "filter"

    @property
    def namespace(self) -> str:
        return f"{self.value}s"

    @property
    def suffix(self) -> str:
        return self.value.capitalize()


def _studly(text: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in str(text).replace("-", "_").split("_") if part)


def artifact_reference(
    kind: ArtifactKind,
    entity_type: str,
    version: int,
    *,
    internal: bool = False,
    action: str | None = None,
) -> str:
    parts = [kind.namespace]
    if internal:
        parts.append(INTERNAL_SEGMENT)
    parts.append(f"v{int(version)}")
    parts.append(f"{_studly(action) if action else ''}{entity_type}{kind.suffix}")
    return ".".join(parts)


class ArtifactRegistry:
    def __init__(self):
        self._factories: dict[str, Callable[..., Any]] = {}

    def register(self, reference: str, factory: Callable[..., Any]) -> Callable[..., Any]:
        existing = self._factories.get(reference)
        if existing is not None and existing is not factory:
            raise ValueError(f'Artifact "{reference}" is already registered')
        self._factories[reference] = factory
        return factory

    def lookup(self, reference: str) -> Callable[..., Any] | None:
        return self._factories.get(reference)

    def references(self) -> list[str]:
        return sorted(self._factories)


artifact_registry = ArtifactRegistry()


def register_artifact(
    kind: ArtifactKind,
    entity_type: str,
    *,
    version: int = 1,
    internal: bool = False,
    action: str | None = None,
    registry: ArtifactRegistry | None = None,
):
    reference = artifact_reference(kind, entity_type, version, internal=internal, action=action)

    def _decorator(cls):
        (registry or artifact_registry).register(reference, cls)
        return cls

    return _decorator


def named_artifact(reference: str, *, registry: ArtifactRegistry | None = None):
    """Register an artifact outside the versioned convention, for explicit entity overrides."""

    def _decorator(cls):
        (registry or artifact_registry).register(reference, cls)
        return cls

    return _decorator


def serializer(entity_type: str, **kwargs):
    return register_artifact(ArtifactKind.SERIALIZER, entity_type, **kwargs)


def validator(entity_type: str, **kwargs):
    return register_artifact(ArtifactKind.VALIDATOR, entity_type, **kwargs)


def entity_filter(entity_type: str, **kwargs):
    return register_artifact(ArtifactKind.FILTER, entity_type, **kwargs)


def load_artifacts(package: str = "app.artifacts") -> list[str]:
    pkg = importlib.import_module(package)
    loaded = []
    for module in pkgutil.iter_modules(pkg.__path__):
        if module.name.startswith("_"):
            continue
        importlib.import_module(f"{package}.{module.name}")
        loaded.append(module.name)
    return loaded


@dataclass(frozen=True)
class ResolutionRequest:
    entity_type: str
    api_version: int = 1
    is_internal: bool = False
    # Validators may be specialised per action (create/update).
    action: str | None = None


@dataclass(frozen=True)
class ResolvedBinding:
    serializer: type
    validator: type
    filter: type | None


_DEFAULTS: dict[ArtifactKind, type | None] = {
    ArtifactKind.SERIALIZER: BaseSerializer,
    ArtifactKind.VALIDATOR: BaseValidator,
    ArtifactKind.FILTER: None,
}


class Resolver:
    def __init__(
        self,
        entities: EntityRegistry | None = None,
        artifacts: ArtifactRegistry | None = None,
    ):
        self.entities = entities or entity_registry
        self.artifacts = artifacts or artifact_registry
        self._cache: dict[ResolutionRequest, ResolvedBinding] = {}

    def resolve(self, request: ResolutionRequest) -> ResolvedBinding:
        cached = self._cache.get(request)
        if cached is not None:
            return cached
        descriptor = self.entities.describe(request.entity_type)
        binding = ResolvedBinding(
            serializer=self._resolve_kind(ArtifactKind.SERIALIZER, descriptor, request),
            validator=self._resolve_kind(ArtifactKind.VALIDATOR, descriptor, request),
            filter=self._resolve_kind(ArtifactKind.FILTER, descriptor, request),
        )
        _LOG.debug(
            "resolved entity=%s version=%s internal=%s action=%s serializer=%s validator=%s filter=%s",
            request.entity_type,
            request.api_version,
            request.is_internal,
            request.action,
            binding.serializer.__name__,
            binding.validator.__name__,
            binding.filter.__name__ if binding.filter is not None else None,
        )
        self._cache[request] = binding
        return binding

    def warm(self, versions: Iterable[int] = (settings.DEFAULT_API_VERSION,)) -> int:
        count = 0
        for entity_type in self.entities.entity_types():
            for version in versions:
                for internal in (False, True):
                    for action in (None, *VALIDATED_ACTIONS):
                        self.resolve(ResolutionRequest(entity_type, version, internal, action))
                        count += 1
        return count

    def clear_cache(self) -> None:
        self._cache.clear()

    def _override(self, kind: ArtifactKind, descriptor: EntityDescriptor):
        return {
            ArtifactKind.SERIALIZER: descriptor.serializer_override,
            ArtifactKind.VALIDATOR: descriptor.validator_override,
            ArtifactKind.FILTER: descriptor.filter_override,
        }[kind]

    def _candidates(self, kind: ArtifactKind, descriptor: EntityDescriptor, request: ResolutionRequest) -> list[str]:
        actions: list[str | None] = [None]
        if kind is ArtifactKind.VALIDATOR and request.action:
            actions = [request.action, None]
        refs = []
        for action in actions:
            if request.is_internal:
                refs.append(
                    artifact_reference(kind, descriptor.entity_type, request.api_version, internal=True, action=action)
                )
            refs.append(artifact_reference(kind, descriptor.entity_type, request.api_version, action=action))
        return refs

    def _resolve_kind(self, kind: ArtifactKind, descriptor: EntityDescriptor, request: ResolutionRequest):
        override = self._override(kind, descriptor)
        if override is not None:
            if not isinstance(override, str):
                return override
            factory = self.artifacts.lookup(override)
            if factory is None:
                raise ArtifactConstructionError(override, f"{kind.value} override of {descriptor.entity_type} is not registered")
            return factory

        for reference in self._candidates(kind, descriptor, request):
            factory = self.artifacts.lookup(reference)
            if factory is None:
                continue
            if request.is_internal and f".{INTERNAL_SEGMENT}." not in reference:
                _LOG.debug("internal caller downgraded to public artifact %s", reference)
            return factory
        return _DEFAULTS[kind]

    @staticmethod
    def instantiate(artifact: type, *args, **kwargs):
        try:
            return artifact(*args, **kwargs)
        except TypeError as exc:
            raise ArtifactConstructionError(getattr(artifact, "__name__", repr(artifact)), str(exc)) from exc


resolver = Resolver()
