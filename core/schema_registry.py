# core/schema_registry.py
from __future__ import annotations
from typing import Callable, List, Tuple
from sqlalchemy.engine import Engine
import importlib
import logging
import pkgutil

logger = logging.getLogger(__name__)

# Schema installer type
SchemaInstaller = Callable[[Engine], None]

# Registry: (name, installer_func), in registration order
_REGISTRY: List[Tuple[str, SchemaInstaller]] = []

def register(
    name: str | SchemaInstaller, installer: SchemaInstaller | None = None
) -> SchemaInstaller | Callable[[SchemaInstaller], SchemaInstaller]:
    """
    Registers a schema installer function.
    Can be used as a decorator (@register), (@register("name")) or a call (register("name", fn)).
    Registering the same name twice keeps the first installer.
    """
    def _add(label: str, fn: SchemaInstaller) -> SchemaInstaller:
        if not any(existing == label for existing, _ in _REGISTRY):
            _REGISTRY.append((label, fn))
        return fn

    if isinstance(name, str) and installer is None:
        def decorator(fn: SchemaInstaller) -> SchemaInstaller:
            return _add(name, fn)
        return decorator

    if callable(name) and installer is None:
        return _add(name.__name__, name)

    if isinstance(name, str) and callable(installer):
        return _add(name, installer)

    raise TypeError("Invalid usage of @register")

def run_all(engine: Engine) -> None:
    """
    Runs all registered schema installers in order.
    A failing installer is logged and re-raised: later tables may depend on it.
    """
    logger.info("SchemaRegistry: running %d installers", len(_REGISTRY))
    for name, installer_fn in _REGISTRY:
        try:
            installer_fn(engine)
            logger.info("  -> applied schema: %s", name)
        except Exception:
            logger.exception("  -> FAILED to apply schema %s", name)
            raise

def auto_discover(package: str = "schemas") -> None:
    """
    Imports every module of a package so their @register decorators run.
    Modules are imported in name order, which is also the install order.
    """
    pkg = importlib.import_module(package)
    for info in sorted(pkgutil.iter_modules(pkg.__path__), key=lambda m: m.name):
        if info.ispkg:
            continue
        module_name = f"{package}.{info.name}"
        importlib.import_module(module_name)
        logger.debug("Schema auto_discover: imported %s", module_name)
