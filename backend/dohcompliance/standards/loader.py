"""Standards loader: builds the catalog and holds the process-wide copy.

The catalog is loaded once at startup and read-only afterwards. It can only be
refreshed by replacing it wholesale with a catalog of a different version;
subscribers (the result cache) are told so they can drop stale entries.
"""

import json
import threading
from pathlib import Path
from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from dohcompliance.errors import StandardsNotReadyError
from dohcompliance.standards.models import StandardsCatalog
from dohcompliance.standards.reference_data import DOH_CORE_STANDARDS

logger = structlog.get_logger()

CatalogListener = Callable[[StandardsCatalog, Optional[StandardsCatalog]], None]


def build_reference_catalog() -> StandardsCatalog:
    """Build the built-in DOH-UAE-2024 catalog."""
    return StandardsCatalog.model_validate(DOH_CORE_STANDARDS)


def load_catalog_file(path: Path) -> StandardsCatalog:
    """Load a catalog from a JSON file with the same camelCase layout.

    Raises:
        ValueError: if the file is not valid JSON or not a valid catalog.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return StandardsCatalog.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"Invalid standards catalog at {path}: {e}") from e


class StandardsRegistry:
    """Holds the loaded catalog; refuses to answer before load completes."""

    def __init__(self):
        self._catalog: Optional[StandardsCatalog] = None
        self._listeners: list[CatalogListener] = []
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._catalog is not None

    def get(self) -> StandardsCatalog:
        """Return the active catalog.

        Raises:
            StandardsNotReadyError: if nothing has been loaded yet.
        """
        catalog = self._catalog
        if catalog is None:
            raise StandardsNotReadyError(
                "DOH core standards not loaded. Please wait and try again."
            )
        return catalog

    def load(self, path: Optional[str] = None) -> StandardsCatalog:
        """Load from `path` if given, otherwise the built-in reference catalog."""
        catalog = load_catalog_file(Path(path)) if path else build_reference_catalog()
        self.replace(catalog)
        return catalog

    def replace(self, catalog: StandardsCatalog) -> bool:
        """Swap in a new catalog. Same-version replacements are ignored.

        Returns:
            True if the active catalog changed.
        """
        with self._lock:
            previous = self._catalog
            if previous is not None and previous.version == catalog.version:
                return False
            self._catalog = catalog
            listeners = list(self._listeners)

        logger.info(
            "standards_loaded",
            standard_id=catalog.standard_id,
            version=catalog.version,
            previous_version=previous.version if previous else None,
            domains=len(catalog.domains),
            requirements=catalog.requirement_count,
        )
        for listener in listeners:
            listener(catalog, previous)
        return True

    def subscribe(self, listener: CatalogListener) -> None:
        """Call `listener(new, previous)` whenever the catalog changes."""
        self._listeners.append(listener)

    def reset(self) -> None:
        """Forget the loaded catalog (tests and shutdown)."""
        with self._lock:
            self._catalog = None


# Module-level singleton
standards_registry = StandardsRegistry()
