"""Medication catalog loading and validation."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from med_reminders.schemas.medication import Catalog, Medication

logger = logging.getLogger(__name__)


class CatalogError(RuntimeError):
    """Raised when the medication catalog is missing or malformed."""


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "<root>"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def _parse_medication(index: int, raw: Any) -> Medication:
    if not isinstance(raw, Mapping):
        raise CatalogError(f"medications[{index}] must be a mapping")
    label = raw.get("id") or f"medications[{index}]"
    try:
        return Medication.model_validate(dict(raw))
    except ValidationError as exc:
        raise CatalogError(f"Invalid medication {label!s}: {_describe(exc)}") from exc


def parse_catalog(data: Any, *, source: str = "<catalog>") -> Catalog:
    """Validate an already-parsed catalog document."""
    if not isinstance(data, Mapping):
        raise CatalogError(f"{source}: catalog must be a mapping")
    if "anchor_date" not in data:
        raise CatalogError(f"{source}: anchor_date is required")
    raw_meds = data.get("medications")
    if not isinstance(raw_meds, list) or not raw_meds:
        raise CatalogError(f"{source}: medications must be a non-empty list")

    medications = [_parse_medication(index, raw) for index, raw in enumerate(raw_meds)]

    seen: set[str] = set()
    for medication in medications:
        if medication.id in seen:
            raise CatalogError(f"{source}: duplicate medication id {medication.id!r}")
        seen.add(medication.id)

    try:
        return Catalog(anchor_date=data["anchor_date"], medications=tuple(medications))
    except ValidationError as exc:
        raise CatalogError(f"{source}: {_describe(exc)}") from exc


def load_catalog(path: Path | str) -> Catalog:
    """Read and validate the YAML catalog, failing fast on any problem."""
    catalog_path = Path(path)
    try:
        with catalog_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except FileNotFoundError as exc:
        raise CatalogError(f"Catalog file not found: {catalog_path}") from exc
    except yaml.YAMLError as exc:
        raise CatalogError(f"Catalog file is not valid YAML: {catalog_path}: {exc}") from exc

    catalog = parse_catalog(data, source=str(catalog_path))
    logger.info(
        "Loaded %s medications from %s (anchor %s)",
        len(catalog.medications),
        catalog_path,
        catalog.anchor_date.isoformat(),
    )
    return catalog


__all__ = ["CatalogError", "load_catalog", "parse_catalog"]
