from __future__ import annotations

import importlib
import logging
import pkgutil

import app.models as models_pkg
from app.core.config import settings
from app.registry.artifacts import load_artifacts, resolver
from app.registry.entities import entity_registry

_LOG = logging.getLogger("app.resolver")


def load_models() -> None:
    for module in pkgutil.iter_modules(models_pkg.__path__):
        if module.name.startswith("_"):
            continue
        importlib.import_module(f"{models_pkg.__name__}.{module.name}")


def bootstrap() -> None:
    """Populate entity and artifact registries, then freeze them for request traffic."""
    if entity_registry.frozen:
        return
    load_models()
    loaded = load_artifacts()
    entity_registry.freeze()
    warmed = resolver.warm((settings.DEFAULT_API_VERSION,))
    _LOG.info(
        "registries ready entities=%s artifact_modules=%s warmed_bindings=%s",
        len(entity_registry.entity_types()),
        len(loaded),
        warmed,
    )
