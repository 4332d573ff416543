# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Metadata resolution with an injectable, append-only cache.

:class:`MetadataResolver` fronts any object implementing :class:`MetadataSource`
(the Web API client in production, a stub in tests) and remembers every
definition it fetched in a :class:`MetadataCache`. Entries are never evicted
during a session; :meth:`MetadataCache.clear` is the explicit cache-bust.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Hashable, List, Optional, Protocol, runtime_checkable

from ..core._error_codes import METADATA_ATTRIBUTE_NOT_FOUND, METADATA_ENTITY_NOT_FOUND
from ..core.errors import MetadataNotFoundError, ValidationError
from ..models.metadata import (
    AttributeDescriptor,
    EntityDescriptor,
    NavigationTarget,
    OptionSetValue,
    RelationshipDescriptor,
    RelationshipType,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class MetadataSource(Protocol):
    """Anything that can answer entity, attribute and relationship lookups."""

    def get_entity(self, logical_name: str) -> Optional[EntityDescriptor]: ...

    def get_attributes(self, logical_name: str) -> List[AttributeDescriptor]: ...

    def get_relationships(self, logical_name: str, relationship_type: RelationshipType) -> List[RelationshipDescriptor]: ...


class MetadataCache:
    """
    Process- or session-wide store of fetched metadata.

    Keys are tuples whose string parts are lowercased, so lookups are
    case-insensitive on logical names. There is no eviction; share one
    instance between resolvers to share fetched metadata, or give each tenant
    its own to keep them isolated.
    """

    def __init__(self) -> None:
        self._entries: Dict[Hashable, Any] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _normalize(key: tuple) -> tuple:
        return tuple(k.lower() if isinstance(k, str) else k for k in key)

    def get_or_fetch(self, key: tuple, fetch: Callable[[], Any]) -> Any:
        """Return the cached value for ``key``, calling ``fetch`` and storing its result on a miss."""
        nkey = self._normalize(key)
        if nkey in self._entries:
            self.hits += 1
            return self._entries[nkey]
        self.misses += 1
        logger.debug("Metadata cache miss: %s", nkey)
        value = fetch()
        self._entries[nkey] = value
        return value

    def __contains__(self, key: tuple) -> bool:
        return self._normalize(key) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0


class MetadataResolver:
    """
    Cached access to entity, attribute and relationship definitions.

    :param source: Metadata provider, typically :class:`~dataverse_query.data._odata._ODataClient`.
    :type source: MetadataSource
    :param cache: Cache to read from and append to. A private cache is created when omitted.
    :type cache: MetadataCache or None

    Example::

        resolver = MetadataResolver(odata_client)
        contact = resolver.get_entity("contact")
        nav = resolver.resolve_navigation("contact", "account", to_attribute="parentcustomerid")
        if nav is not None:
            print(nav.navigation_property)
    """

    def __init__(self, source: MetadataSource, cache: Optional[MetadataCache] = None) -> None:
        self._source = source
        self.cache = cache if cache is not None else MetadataCache()

    @staticmethod
    def _require(name: str, what: str) -> str:
        value = (name or "").strip()
        if not value:
            raise ValidationError(f"{what} is required")
        return value

    # -------------------------------------------------------------- entities
    def find_entity(self, logical_name: str) -> Optional[EntityDescriptor]:
        """Entity definition, or None when the environment has none by that name."""
        name = self._require(logical_name, "entity logical name")
        return self.cache.get_or_fetch(("entity", name), lambda: self._source.get_entity(name))

    def get_entity(self, logical_name: str) -> EntityDescriptor:
        """
        Entity definition.

        :raises ~dataverse_query.core.errors.MetadataNotFoundError: If no definition matches.
        """
        entity = self.find_entity(logical_name)
        if entity is None:
            raise MetadataNotFoundError(
                f"Entity '{logical_name}' not found",
                subcode=METADATA_ENTITY_NOT_FOUND,
                details={"logical_name": logical_name},
            )
        return entity

    def list_entities(self) -> List[EntityDescriptor]:
        lister = getattr(self._source, "list_entities", None)
        if lister is None:
            return []
        return self.cache.get_or_fetch(("entities",), lister)

    # ------------------------------------------------------------ attributes
    def get_attributes(self, logical_name: str) -> List[AttributeDescriptor]:
        name = self._require(logical_name, "entity logical name")
        return self.cache.get_or_fetch(("attributes", name), lambda: self._source.get_attributes(name))

    def attribute_map(self, logical_name: str) -> Dict[str, AttributeDescriptor]:
        """Attributes of an entity keyed by lowercased logical name."""
        return {a.logical_name.lower(): a for a in self.get_attributes(logical_name)}

    def find_attribute(self, entity_logical_name: str, attribute_logical_name: str) -> Optional[AttributeDescriptor]:
        return self.attribute_map(entity_logical_name).get((attribute_logical_name or "").lower())

    def get_attribute(self, entity_logical_name: str, attribute_logical_name: str) -> AttributeDescriptor:
        """
        One attribute definition.

        :raises ~dataverse_query.core.errors.MetadataNotFoundError: If the entity has no such attribute.
        """
        attr = self.find_attribute(entity_logical_name, attribute_logical_name)
        if attr is None:
            raise MetadataNotFoundError(
                f"Attribute '{attribute_logical_name}' not found on '{entity_logical_name}'",
                subcode=METADATA_ATTRIBUTE_NOT_FOUND,
                details={"entity": entity_logical_name, "attribute": attribute_logical_name},
            )
        return attr

    def get_option_set_values(self, entity_logical_name: str, attribute_logical_name: str) -> List[OptionSetValue]:
        fetcher = getattr(self._source, "get_option_set_values", None)
        if fetcher is None:
            return []
        return self.cache.get_or_fetch(
            ("optionset", entity_logical_name, attribute_logical_name),
            lambda: fetcher(entity_logical_name, attribute_logical_name),
        )

    # --------------------------------------------------------- relationships
    def get_relationships(self, logical_name: str, direction: RelationshipType) -> List[RelationshipDescriptor]:
        """
        ``ManyToOne`` or ``OneToMany`` relationships of an entity.

        Many-to-many relationships have a different shape; use
        :meth:`get_many_to_many_relationships`.
        """
        name = self._require(logical_name, "entity logical name")
        direction = RelationshipType(direction)
        if direction == RelationshipType.MANY_TO_MANY:
            raise ValidationError("Use get_many_to_many_relationships() for ManyToMany relationships")
        return self.cache.get_or_fetch(
            ("relationships", name, direction.value),
            lambda: self._source.get_relationships(name, direction),
        )

    def get_many_to_many_relationships(self, logical_name: str) -> List[RelationshipDescriptor]:
        name = self._require(logical_name, "entity logical name")
        fetcher = getattr(self._source, "get_many_to_many_relationships", None)
        if fetcher is None:
            return []
        return self.cache.get_or_fetch(("relationships", name, RelationshipType.MANY_TO_MANY.value), lambda: fetcher(name))

    def resolve_navigation(
        self,
        parent_logical_name: str,
        child_logical_name: str,
        from_attribute: Optional[str] = None,
        to_attribute: Optional[str] = None,
    ) -> Optional[NavigationTarget]:
        """
        Find the navigation property that expands ``child`` from ``parent``.

        Looks first for a many-to-one relationship of the parent that references
        the child (matching ``to_attribute`` against the lookup attribute when
        given), then for a one-to-many relationship whose referencing entity is
        the child (matching ``from_attribute`` when given).

        :return: The match, or None when the parent has no such relationship.
        :rtype: ~dataverse_query.models.metadata.NavigationTarget or None
        """
        child = (child_logical_name or "").lower()
        to_lower = to_attribute.lower() if to_attribute else None
        from_lower = from_attribute.lower() if from_attribute else None

        for rel in self.get_relationships(parent_logical_name, RelationshipType.MANY_TO_ONE):
            if rel.referenced_entity.lower() != child:
                continue
            if to_lower and rel.referencing_attribute.lower() != to_lower:
                continue
            if rel.referencing_navigation_property:
                return NavigationTarget(rel, rel.referencing_navigation_property)

        for rel in self.get_relationships(parent_logical_name, RelationshipType.ONE_TO_MANY):
            if rel.referencing_entity.lower() != child:
                continue
            if from_lower and rel.referencing_attribute.lower() != from_lower:
                continue
            if rel.referenced_navigation_property:
                return NavigationTarget(rel, rel.referenced_navigation_property)

        return None


__all__ = ["MetadataSource", "MetadataCache", "MetadataResolver"]
