"""Category resolution: cache, rules, collaborator category and aliases."""

from collections import defaultdict
from typing import Iterable, Optional

import structlog

from ledgersync.database.base import Database
from ledgersync.domain.entities import (
    CategorizationRule,
    CategoryMapping,
    CategoryResolution,
    CategorySource,
    source_rank,
)
from ledgersync.domain.errors import ConflictError, ValidationError
from ledgersync.utils.identifiers import normalize_description

logger = structlog.get_logger(__name__)

MAX_ALIAS_HOPS = 10

# Placeholder categories some vendors emit instead of leaving the field empty
PLACEHOLDER_CATEGORIES = frozenset({"", "N/A"})


def _clean_category(category: Optional[str]) -> Optional[str]:
    if category is None:
        return None
    category = category.strip()
    if category in PLACEHOLDER_CATEGORIES:
        return None
    return category


class CategoryCache:
    """Normalised description -> category map, built once per ingestion batch.

    Entries come from the most common historical category per description,
    with explicit manual overrides replacing them.
    """

    def __init__(self, entries: Optional[dict[str, str]] = None):
        self._entries: dict[str, str] = {}
        for description, category in (entries or {}).items():
            self.set(description, category)

    @classmethod
    def build(cls, db: Database) -> "CategoryCache":
        """Build a cache from category history and overrides."""
        cache = cls()
        cache.rebuild(db)
        return cache

    def rebuild(self, db: Database) -> None:
        """Discard all entries and reload them from the database."""
        self.reset()

        counts: dict[str, dict[str, int]] = defaultdict(dict)
        for description, category, occurrences in db.get_category_history():
            category = _clean_category(category)
            if category is None:
                continue
            key = normalize_description(description)
            counts[key][category] = counts[key].get(category, 0) + occurrences

        for key, by_category in counts.items():
            # Highest count wins; ties go to the alphabetically first category
            best = min(by_category.items(), key=lambda item: (-item[1], item[0]))
            self._entries[key] = best[0]

        for description, category in db.list_category_overrides().items():
            self.set(description, category)

        logger.debug("category_cache_built", entries=len(self._entries))

    def reset(self) -> None:
        """Drop all entries."""
        self._entries.clear()

    def set(self, description: str, category: str) -> None:
        """Add or replace an entry."""
        category = _clean_category(category)
        key = normalize_description(description)
        if category is None or not key:
            return
        self._entries[key] = category

    def lookup(self, description: Optional[str]) -> Optional[str]:
        """Case-insensitive exact lookup of a description."""
        return self._entries.get(normalize_description(description))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, description: object) -> bool:
        return isinstance(description, str) and normalize_description(description) in self._entries


class CategoryResolver:
    """Assigns a final category through the cache -> rule -> collaborator cascade."""

    def __init__(
        self,
        cache: CategoryCache,
        rules: Iterable[CategorizationRule] = (),
        mappings: Iterable[CategoryMapping] = (),
        max_alias_hops: int = MAX_ALIAS_HOPS,
    ):
        """Initialize category resolver.

        Args:
            cache: Per-batch category cache
            rules: Rules in evaluation order; inactive rules are ignored
            mappings: Category alias edges (source -> target)
            max_alias_hops: Maximum alias substitutions before giving up
        """
        self.cache = cache
        self.rules = [
            (rule.name_pattern.strip().lower(), rule)
            for rule in rules
            if rule.is_active and rule.name_pattern.strip()
        ]
        self.aliases = {m.source_category: m.target_category for m in mappings}
        self.max_alias_hops = max_alias_hops

    @classmethod
    def from_database(cls, db: Database, cache: Optional[CategoryCache] = None) -> "CategoryResolver":
        """Create a resolver with a freshly built cache and current rules and aliases."""
        return cls(
            cache=cache if cache is not None else CategoryCache.build(db),
            rules=db.list_rules(active_only=True),
            mappings=db.list_mappings(),
        )

    def resolve(self, description: Optional[str], source_category: Optional[str] = None) -> CategoryResolution:
        """Resolve the category of one transaction description.

        Args:
            description: Raw transaction description
            source_category: Category supplied by the collaborator, if any

        Returns:
            CategoryResolution with the aliased category and the cascade phase that produced it
        """
        rule_matched = None
        category = self.cache.lookup(description)
        source = CategorySource.CACHE if category else None

        if category is None:
            lowered = (description or "").lower()
            for pattern, rule in self.rules:
                if pattern in lowered:
                    category = rule.target_category
                    source = CategorySource.RULE
                    rule_matched = rule.name_pattern
                    break

        if category is None:
            category = _clean_category(source_category)
            source = CategorySource.SCRAPER if category else None

        category, limit_reached = self.resolve_alias(category)
        return CategoryResolution(
            category=category,
            source=source,
            rule_matched=rule_matched,
            alias_limit_reached=limit_reached,
        )

    def resolve_alias(self, category: Optional[str]) -> tuple[Optional[str], bool]:
        """Follow alias mappings from a category.

        Returns:
            Tuple of (final category, whether the hop limit was reached)
        """
        if category is None:
            return None, False

        start = category
        for _ in range(self.max_alias_hops):
            target = self.aliases.get(category)
            if target is None:
                return category, False
            category = target

        if category not in self.aliases:
            return category, False

        logger.warning(
            "category_alias_limit_reached",
            start_category=start,
            resolved_category=category,
            max_hops=self.max_alias_hops,
        )
        return category, True


def should_replace_category(
    update_on_rescrape: bool,
    stored_category: Optional[str],
    stored_source: Optional[CategorySource],
    resolution: CategoryResolution,
) -> bool:
    """Whether a re-collected row's category may overwrite the stored one.

    Only a strictly higher-ranked source replaces a stored category, and
    only when updating on rescrape is enabled.
    """
    if not update_on_rescrape or resolution.category is None:
        return False
    if resolution.category == stored_category:
        return False
    return source_rank(resolution.source) > source_rank(stored_source)


class CategoryRuleService:
    """Service for managing categorization rules and category aliases."""

    def __init__(self, db: Database):
        """Initialize rule service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_rule(self, name_pattern: str, target_category: str) -> int:
        """Create a substring rule.

        Raises:
            ValidationError: If the pattern or category is empty
            ConflictError: If the same rule already exists
        """
        name_pattern = (name_pattern or "").strip()
        target_category = (target_category or "").strip()
        if not name_pattern:
            raise ValidationError("Rule pattern cannot be empty")
        if not target_category:
            raise ValidationError("Rule category cannot be empty")
        for rule in self.db.list_rules():
            if rule.name_pattern == name_pattern and rule.target_category == target_category:
                raise ConflictError(f"Rule '{name_pattern}' -> '{target_category}' already exists (ID: {rule.id})")
        return self.db.create_rule(name_pattern, target_category)

    def list_rules(self, active_only: bool = False) -> list[CategorizationRule]:
        """List rules in evaluation order."""
        return self.db.list_rules(active_only=active_only)

    def enable_rule(self, rule_id: int) -> None:
        self.db.set_rule_active(rule_id, True)

    def disable_rule(self, rule_id: int) -> None:
        self.db.set_rule_active(rule_id, False)

    def delete_rule(self, rule_id: int) -> None:
        self.db.delete_rule(rule_id)

    def add_mapping(self, source_category: str, target_category: str) -> int:
        """Create or retarget a category alias.

        Raises:
            ValidationError: If either side is empty or both sides are equal
        """
        source_category = (source_category or "").strip()
        target_category = (target_category or "").strip()
        if not source_category or not target_category:
            raise ValidationError("Mapping source and target categories cannot be empty")
        if source_category == target_category:
            raise ValidationError(f"Category '{source_category}' cannot be mapped to itself")
        return self.db.upsert_mapping(source_category, target_category)

    def list_mappings(self) -> list[CategoryMapping]:
        return self.db.list_mappings()

    def delete_mapping(self, mapping_id: int) -> None:
        self.db.delete_mapping(mapping_id)
