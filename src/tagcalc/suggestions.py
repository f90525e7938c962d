"""Variable suggestions offered while editing a formula.

A suggestion source maps a search term to candidate variables.  The
session only relies on the :class:`SuggestionSource` protocol; the
catalog here is an in-memory source that can be loaded from YAML.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

import yaml

from tagcalc.models import Suggestion


class SuggestionSource(Protocol):
    """Protocol for anything that can look up variables by name."""

    def search(self, term: str) -> list[Suggestion]:
        """Return the candidates matching *term*, best first."""
        ...


DEFAULT_SUGGESTIONS: tuple[tuple[int, str, float], ...] = (
    (1, "Revenue", 1000),
    (2, "Expenses", 500),
    (3, "Profit", 500),
    (4, "GrowthRate", 0.1),
    (5, "TaxRate", 0.2),
    (6, "Employees", 50),
    (7, "RevenuePerEmployee", 20),
    (8, "MarketingBudget", 200),
    (9, "SalesForecast", 1500),
    (10, "OperatingCosts", 300),
    (11, "CustomerAcquisitionCost", 50),
    (12, "AverageOrderValue", 75),
    (13, "ConversionRate", 0.03),
    (14, "ChurnRate", 0.05),
    (15, "LifetimeValue", 500),
)


class SuggestionCatalog:
    """In-memory suggestion source with case-insensitive substring search."""

    def __init__(self, suggestions: list[Suggestion] | None = None) -> None:
        """Initialize the catalog.

        Args:
            suggestions: Catalog entries in display order.  Defaults to the
                built-in financial variables.

        Raises:
            ValueError: If two entries share an id.
        """
        if suggestions is None:
            suggestions = [Suggestion(id=i, name=n, value=v) for i, n, v in DEFAULT_SUGGESTIONS]
        seen: set[int] = set()
        for s in suggestions:
            if s.id in seen:
                raise ValueError(f"Duplicate suggestion id: {s.id}")
            seen.add(s.id)
        self._suggestions = list(suggestions)

    def __len__(self) -> int:
        return len(self._suggestions)

    def __iter__(self):
        return iter(self._suggestions)

    def search(self, term: str) -> list[Suggestion]:
        """Return entries whose name contains *term*, ignoring case.

        A blank term matches nothing.
        """
        if not term.strip():
            return []
        needle = term.lower()
        return [s for s in self._suggestions if needle in s.name.lower()]

    @classmethod
    def from_records(cls, records: list[dict[str, Any]]) -> SuggestionCatalog:
        """Build a catalog from raw mappings.

        Records without a ``name`` are skipped; a missing ``value`` is 0.
        """
        suggestions: list[Suggestion] = []
        for rec in records:
            if not isinstance(rec, dict) or not rec.get("name"):
                continue
            suggestions.append(
                Suggestion(
                    id=int(rec["id"]),
                    name=str(rec["name"]),
                    value=float(rec.get("value") or 0),
                )
            )
        return cls(suggestions)

    @classmethod
    def from_yaml(cls, path: Path) -> SuggestionCatalog:
        """Load a catalog from a YAML file.

        The file holds either a list of ``{id, name, value}`` mappings or a
        mapping with a ``suggestions:`` list.

        Raises:
            ValueError: If the document has neither shape.
        """
        data = yaml.safe_load(path.read_text()) or []
        if isinstance(data, dict):
            data = data.get("suggestions") or []
        if not isinstance(data, list):
            raise ValueError(f"Suggestions file {path} must contain a list")
        return cls.from_records(data)


def load_catalog(project_dir: Path) -> SuggestionCatalog:
    """Return the catalog configured for *project_dir*.

    Uses ``suggestions_file`` from ``tagcalc.yaml`` when set, otherwise the
    built-in catalog.
    """
    from tagcalc.project import load_project_config, resolve_suggestions_path

    config = load_project_config(project_dir)
    path = resolve_suggestions_path(project_dir, config)
    if path is None:
        return SuggestionCatalog()
    return SuggestionCatalog.from_yaml(path)
