import yaml
from pathlib import Path
from typing import Optional
from pydantic import ValidationError
from vcc.compliance.catalog import StandardsCatalog, default_catalog
from vcc.domain.errors import CatalogError
from .models import AppConfig

def load_config(config_path: Path) -> AppConfig:
    """Loads YAML config and parses it into AppConfig Pydantic model."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        data = yaml.safe_load(f) or {}

    return AppConfig(**data)


def load_catalog(catalog_path: Optional[Path]) -> StandardsCatalog:
    """Loads a standards catalog from YAML, or the built-in one when no path is given.

    Any failure is a CatalogError: without a catalog nothing can be scored.
    """
    if catalog_path is None:
        return default_catalog()
    if not catalog_path.exists():
        raise CatalogError(f"Catalog file not found: {catalog_path}", catalog_path)

    try:
        with open(catalog_path, 'r') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise CatalogError(f"Cannot read catalog {catalog_path}: {e}", catalog_path) from e

    if not isinstance(data, dict):
        raise CatalogError(f"Catalog {catalog_path} must be a YAML mapping", catalog_path)

    try:
        return StandardsCatalog(**data)
    except ValidationError as e:
        raise CatalogError(f"Invalid catalog {catalog_path}: {e}", catalog_path) from e
