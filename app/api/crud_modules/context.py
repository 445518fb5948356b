from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.registry.artifacts import VALIDATED_ACTIONS, ResolutionRequest, ResolvedBinding, Resolver, resolver
from app.registry.entities import EntityDescriptor, EntityRegistry, entity_registry
from app.services.query_compiler import param_items


@dataclass(frozen=True)
class RequestContext:
    descriptor: EntityDescriptor
    binding: ResolvedBinding
    api_version: int
    is_internal: bool
    action: str
    params: tuple[tuple[str, str], ...] = ()

    @property
    def model(self) -> type:
        return self.descriptor.model


def build_context(
    resource: str,
    *,
    api_version: int,
    is_internal: bool,
    action: str,
    params: Any = None,
    entities: EntityRegistry | None = None,
    binding_resolver: Resolver | None = None,
) -> RequestContext:
    descriptor = (entities or entity_registry).for_resource(resource)
    binding = (binding_resolver or resolver).resolve(
        ResolutionRequest(
            entity_type=descriptor.entity_type,
            api_version=api_version,
            is_internal=is_internal,
            action=action if action in VALIDATED_ACTIONS else None,
        )
    )
    return RequestContext(
        descriptor=descriptor,
        binding=binding,
        api_version=api_version,
        is_internal=is_internal,
        action=action,
        params=tuple(param_items(params)),
    )
