# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Metadata descriptors read from the Dataverse Web API.

These immutable values describe entities, attributes and relationships as
returned by ``EntityDefinitions`` and its navigation collections.

See: https://learn.microsoft.com/en-us/power-apps/developer/data-platform/webapi/reference/metadataentitytypes
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class RelationshipType(str, Enum):
    """Relationship shape, seen from the entity whose relationships were listed."""

    MANY_TO_ONE = "ManyToOne"
    ONE_TO_MANY = "OneToMany"
    MANY_TO_MANY = "ManyToMany"


LOOKUP_ATTRIBUTE_TYPES = frozenset({"lookup", "customer", "owner"})


def _label(value: Any, language_code: Optional[int] = None) -> Optional[str]:
    """Extract display text from a Web API ``Label`` payload."""
    if isinstance(value, str):
        return value
    if not isinstance(value, dict):
        return None
    if language_code is not None:
        for loc in value.get("LocalizedLabels") or []:
            if isinstance(loc, dict) and loc.get("LanguageCode") == language_code and loc.get("Label"):
                return loc["Label"]
    user = value.get("UserLocalizedLabel")
    if isinstance(user, dict) and user.get("Label"):
        return user["Label"]
    return None


@dataclass(frozen=True)
class EntityDescriptor:
    """
    Identifies one table and its Web API collection name.

    :param logical_name: Logical (singular) name, e.g. ``"contact"``.
    :type logical_name: str
    :param entity_set_name: Collection name used in URLs, e.g. ``"contacts"``.
    :type entity_set_name: str
    :param display_name: Localized display name.
    :type display_name: str
    :param primary_id_attribute: Primary key attribute, e.g. ``"contactid"``.
    :type primary_id_attribute: str
    :param primary_name_attribute: Primary name attribute, e.g. ``"fullname"``.
    :type primary_name_attribute: str or None
    """

    logical_name: str
    entity_set_name: str
    display_name: str
    primary_id_attribute: str
    primary_name_attribute: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: Dict[str, Any], language_code: Optional[int] = None) -> "EntityDescriptor":
        logical = data.get("LogicalName") or ""
        return cls(
            logical_name=logical,
            entity_set_name=data.get("EntitySetName") or "",
            display_name=_label(data.get("DisplayName"), language_code) or logical,
            primary_id_attribute=data.get("PrimaryIdAttribute") or f"{logical}id",
            primary_name_attribute=data.get("PrimaryNameAttribute"),
            description=_label(data.get("Description"), language_code),
        )


@dataclass(frozen=True)
class OptionSetValue:
    """One choice of a Picklist, State, Status or Boolean attribute."""

    value: int
    label: str


@dataclass(frozen=True)
class AttributeDescriptor:
    """
    A column of an entity.

    ``attribute_type`` drives both the wire field name (see :meth:`wire_name`)
    and the filter operators that are legal for the attribute.
    """

    logical_name: str
    display_name: str
    attribute_type: str
    is_primary_id: bool = False
    is_primary_name: bool = False
    required_level: Optional[str] = None
    max_length: Optional[int] = None
    precision: Optional[int] = None
    option_set_values: Tuple[OptionSetValue, ...] = ()
    lookup_targets: Tuple[str, ...] = ()

    @property
    def is_polymorphic(self) -> bool:
        return len(self.lookup_targets) > 1

    @property
    def is_lookup(self) -> bool:
        return (self.attribute_type or "").lower() in LOOKUP_ATTRIBUTE_TYPES

    def wire_name(self) -> str:
        """Field name to request in ``$select``; lookups select ``_<name>_value``."""
        if self.is_lookup:
            return f"_{self.logical_name}_value"
        return self.logical_name

    @classmethod
    def from_api_response(cls, data: Dict[str, Any], language_code: Optional[int] = None) -> "AttributeDescriptor":
        logical = data.get("LogicalName") or ""
        required = data.get("RequiredLevel")
        if isinstance(required, dict):
            required = required.get("Value")
        return cls(
            logical_name=logical,
            display_name=_label(data.get("DisplayName"), language_code) or logical,
            attribute_type=data.get("AttributeType") or "",
            is_primary_id=bool(data.get("IsPrimaryId")),
            is_primary_name=bool(data.get("IsPrimaryName")),
            required_level=required,
            max_length=data.get("MaxLength"),
            precision=data.get("Precision"),
            lookup_targets=tuple(data.get("Targets") or ()),
        )


@dataclass(frozen=True)
class RelationshipDescriptor:
    """
    A relationship between two entities.

    For ``ManyToOne`` the navigation property usable from the referencing
    (child) side is ``referencing_navigation_property``; for ``OneToMany`` the
    one usable from the referenced (parent) side is ``referenced_navigation_property``.
    """

    schema_name: str
    referencing_entity: str
    referenced_entity: str
    referencing_attribute: str
    referencing_navigation_property: str
    referenced_navigation_property: Optional[str]
    relationship_type: RelationshipType

    @property
    def navigation_property(self) -> Optional[str]:
        """Navigation property usable in ``$expand`` from the entity that listed this relationship."""
        if self.relationship_type == RelationshipType.ONE_TO_MANY:
            return self.referenced_navigation_property or None
        return self.referencing_navigation_property or None

    @classmethod
    def from_api_response(cls, data: Dict[str, Any], relationship_type: RelationshipType) -> "RelationshipDescriptor":
        if relationship_type == RelationshipType.MANY_TO_MANY:
            return cls(
                schema_name=data.get("SchemaName") or "",
                referencing_entity=data.get("Entity1LogicalName") or "",
                referenced_entity=data.get("Entity2LogicalName") or "",
                referencing_attribute="",
                referencing_navigation_property=data.get("Entity1NavigationPropertyName") or "",
                referenced_navigation_property=data.get("Entity2NavigationPropertyName") or "",
                relationship_type=relationship_type,
            )
        return cls(
            schema_name=data.get("SchemaName") or "",
            referencing_entity=data.get("ReferencingEntity") or "",
            referenced_entity=data.get("ReferencedEntity") or "",
            referencing_attribute=data.get("ReferencingAttribute") or "",
            referencing_navigation_property=data.get("ReferencingEntityNavigationPropertyName") or "",
            referenced_navigation_property=data.get("ReferencedEntityNavigationPropertyName"),
            relationship_type=relationship_type,
        )


@dataclass(frozen=True)
class NavigationTarget:
    """Result of resolving a join hint: the matched relationship and the property to expand."""

    relationship: RelationshipDescriptor
    navigation_property: str


__all__ = [
    "RelationshipType",
    "EntityDescriptor",
    "OptionSetValue",
    "AttributeDescriptor",
    "RelationshipDescriptor",
    "NavigationTarget",
    "LOOKUP_ATTRIBUTE_TYPES",
]
