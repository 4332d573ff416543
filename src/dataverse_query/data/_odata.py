# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Dataverse Web API access: metadata definitions, saved views and query execution.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import requests

from ..core._error_codes import (
    METADATA_ENTITY_NOT_FOUND,
    TRANSIENT_STATUS,
    VALIDATION_NAME_EMPTY,
    http_subcode,
)
from ..core._http import _HttpClient
from ..core.config import QueryConfig
from ..core.errors import HttpError, MetadataNotFoundError, QueryExecutionError, ValidationError
from ..core.results import QueryPage
from ..models.metadata import (
    AttributeDescriptor,
    EntityDescriptor,
    OptionSetValue,
    RelationshipDescriptor,
    RelationshipType,
)
from ..models.view import ViewDefinition

logger = logging.getLogger(__name__)

_ENTITY_SELECT = "LogicalName,DisplayName,EntitySetName,PrimaryIdAttribute,PrimaryNameAttribute,Description"
_ATTRIBUTE_SELECT = "LogicalName,DisplayName,AttributeType,IsPrimaryId,IsPrimaryName,RequiredLevel"

# Metadata casts tried in order when reading option set choices
_OPTION_SET_CASTS = (
    "Microsoft.Dynamics.CRM.PicklistAttributeMetadata",
    "Microsoft.Dynamics.CRM.StateAttributeMetadata",
    "Microsoft.Dynamics.CRM.StatusAttributeMetadata",
    "Microsoft.Dynamics.CRM.BooleanAttributeMetadata",
)


class _ODataClient:
    """
    Low-level Dataverse Web API client.

    Implements the metadata source consumed by
    :class:`~dataverse_query.data._metadata.MetadataResolver` and the query
    executor consumed by :func:`~dataverse_query.data._pagination.fetch_all_pages`.

    :param auth: Optional token provider exposing ``_acquire_token(scope)``. When None,
        requests rely on the credentials already carried by ``session``.
    :param base_url: Organization URL, e.g. ``"https://org.crm.dynamics.com"``.
    :type base_url: str
    :param config: Optional configuration; defaults to :meth:`QueryConfig.from_env`.
    :type config: ~dataverse_query.core.config.QueryConfig or None
    :param session: Optional :class:`requests.Session` for connection pooling.
    :type session: requests.Session or None
    """

    @staticmethod
    def _escape_odata_quotes(value: str) -> str:
        """Escape single quotes for OData queries (by doubling them)."""
        return value.replace("'", "''")

    def __init__(
        self,
        auth,
        base_url: str,
        config: Optional[QueryConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.auth = auth
        self.base_url = (base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("base_url is required.")
        self.config = config or QueryConfig.from_env()
        self.api = f"{self.base_url}/api/data/{self.config.api_version}"
        self._http = _HttpClient(
            retries=self.config.http_retries,
            backoff=self.config.http_backoff,
            timeout=self.config.http_timeout,
            session=session,
        )

    def close(self) -> None:
        self._http.close()

    # ------------------------------------------------------------ plumbing
    def _headers(self) -> Dict[str, str]:
        """Build standard OData headers, with bearer auth when a credential is configured."""
        headers = {
            "Accept": "application/json",
            "OData-MaxVersion": "4.0",
            "OData-Version": "4.0",
        }
        if self.config.include_annotations:
            headers["Prefer"] = 'odata.include-annotations="*"'
        if self.auth is not None:
            scope = f"{self.base_url}/.default"
            headers["Authorization"] = f"Bearer {self.auth._acquire_token(scope).access_token}"
        return headers

    @staticmethod
    def _error_details(r) -> str:
        """Server-provided error text: ``error.message`` from a JSON body, else the raw body."""
        text = getattr(r, "text", "") or ""
        if text:
            try:
                body = json.loads(text)
            except ValueError:
                return text
            if isinstance(body, dict):
                err = body.get("error")
                if isinstance(err, dict) and err.get("message"):
                    return str(err["message"])
                if body.get("Message"):
                    return str(body["Message"])
            return text
        return getattr(r, "reason", "") or ""

    def _raise_for_status(self, r, error_cls=HttpError) -> None:
        status = getattr(r, "status_code", 0) or 0
        if 200 <= status < 300:
            return
        details = self._error_details(r)
        headers = getattr(r, "headers", {}) or {}
        service_code = None
        try:
            body = json.loads(getattr(r, "text", "") or "")
            if isinstance(body, dict) and isinstance(body.get("error"), dict):
                service_code = body["error"].get("code")
        except ValueError:
            pass
        retry_after = None
        ra = headers.get("Retry-After")
        if ra:
            try:
                retry_after = int(ra)
            except (TypeError, ValueError):
                retry_after = None
        raise error_cls(
            f"Web API request failed ({status}): {details}",
            status_code=status,
            is_transient=status in TRANSIENT_STATUS,
            subcode=http_subcode(status),
            service_error_code=service_code,
            request_id=headers.get("x-ms-service-request-id"),
            body_excerpt=(getattr(r, "text", "") or "")[:200] or None,
            retry_after=retry_after,
        )

    def _request(self, method: str, url: str, **kwargs):
        return self._http._request(method, url, **kwargs)

    def _get_json(self, url: str, *, params: Optional[Dict[str, Any]] = None, error_cls=HttpError) -> Any:
        r = self._request("get", url, headers=self._headers(), params=params)
        self._raise_for_status(r, error_cls)
        try:
            return r.json()
        except ValueError:
            return {}

    def _entity_path(self, logical_name: str) -> str:
        name = (logical_name or "").strip()
        if not name:
            raise ValidationError("logical name is required", subcode=VALIDATION_NAME_EMPTY)
        return f"{self.api}/EntityDefinitions(LogicalName='{self._escape_odata_quotes(name.lower())}')"

    def _get_metadata_json(self, url: str, *, params: Optional[Dict[str, Any]] = None, what: str, subcode: str) -> Any:
        try:
            return self._get_json(url, params=params)
        except HttpError as e:
            if e.status_code == 404:
                raise MetadataNotFoundError(f"{what} not found", subcode=subcode, details=e.details) from e
            raise

    # ------------------------------------------------------------ metadata
    def get_entity(self, logical_name: str) -> Optional[EntityDescriptor]:
        """
        Fetch one entity definition.

        :return: The descriptor, or None when the environment has no such entity.
        """
        url = self._entity_path(logical_name)
        try:
            data = self._get_json(url, params={"$select": _ENTITY_SELECT})
        except HttpError as e:
            if e.status_code == 404:
                return None
            raise
        if not isinstance(data, dict) or not data.get("LogicalName"):
            return None
        return EntityDescriptor.from_api_response(data, self.config.language_code)

    def list_entities(self) -> List[EntityDescriptor]:
        """All entity definitions, sorted by display name."""
        data = self._get_json(f"{self.api}/EntityDefinitions", params={"$select": _ENTITY_SELECT})
        items = data.get("value", []) if isinstance(data, dict) else []
        entities = [EntityDescriptor.from_api_response(e, self.config.language_code) for e in items if isinstance(e, dict)]
        return sorted(entities, key=lambda e: (e.display_name or e.logical_name).lower())

    def get_attributes(self, logical_name: str) -> List[AttributeDescriptor]:
        """
        All attribute definitions of an entity, sorted by display name.

        :raises ~dataverse_query.core.errors.MetadataNotFoundError: If the entity does not exist.
        """
        url = f"{self._entity_path(logical_name)}/Attributes"
        data = self._get_metadata_json(
            url,
            params={"$select": _ATTRIBUTE_SELECT},
            what=f"Entity '{logical_name}'",
            subcode=METADATA_ENTITY_NOT_FOUND,
        )
        items = data.get("value", []) if isinstance(data, dict) else []
        attrs = [AttributeDescriptor.from_api_response(a, self.config.language_code) for a in items if isinstance(a, dict)]
        return sorted(attrs, key=lambda a: (a.display_name or a.logical_name).lower())

    def get_relationships(self, logical_name: str, relationship_type: RelationshipType) -> List[RelationshipDescriptor]:
        """
        Relationships of one direction, read from ``ManyToOneRelationships`` or ``OneToManyRelationships``.

        :raises ~dataverse_query.core.errors.MetadataNotFoundError: If the entity does not exist.
        """
        url = f"{self._entity_path(logical_name)}/{RelationshipType(relationship_type).value}Relationships"
        data = self._get_metadata_json(url, what=f"Entity '{logical_name}'", subcode=METADATA_ENTITY_NOT_FOUND)
        items = data.get("value", []) if isinstance(data, dict) else []
        return [RelationshipDescriptor.from_api_response(r, RelationshipType(relationship_type)) for r in items if isinstance(r, dict)]

    def get_many_to_many_relationships(self, logical_name: str) -> List[RelationshipDescriptor]:
        return self.get_relationships(logical_name, RelationshipType.MANY_TO_MANY)

    def get_option_set_values(self, entity_logical_name: str, attribute_logical_name: str) -> List[OptionSetValue]:
        """
        Choices of a Picklist, State, Status or Boolean attribute.

        Each metadata cast is tried in order; an attribute that is none of these
        yields an empty list.
        """
        attr = self._escape_odata_quotes((attribute_logical_name or "").lower())
        if not attr:
            raise ValidationError("attribute logical name is required", subcode=VALIDATION_NAME_EMPTY)
        base = f"{self._entity_path(entity_logical_name)}/Attributes(LogicalName='{attr}')"
        for cast in _OPTION_SET_CASTS:
            try:
                data = self._get_json(f"{base}/{cast}", params={"$select": "LogicalName", "$expand": "OptionSet"})
            except HttpError as e:
                if e.status_code in (400, 404):
                    continue
                raise
            options = _parse_option_set(data.get("OptionSet") if isinstance(data, dict) else None)
            if options:
                return options
        return []

    # --------------------------------------------------------------- views
    def get_views(self, entity_logical_name: str) -> List[ViewDefinition]:
        """
        System views (``querytype eq 0``) and personal views of an entity, sorted by name.

        A failed listing on either side contributes no views rather than failing the call.
        """
        logical = self._escape_odata_quotes((entity_logical_name or "").lower())
        if not logical:
            raise ValidationError("entity logical name is required", subcode=VALIDATION_NAME_EMPTY)
        sources = (
            (
                f"{self.api}/savedqueries",
                {
                    "$select": "name,savedqueryid,fetchxml,querytype",
                    "$filter": f"returnedtypecode eq '{logical}' and querytype eq 0",
                },
                False,
            ),
            (
                f"{self.api}/userqueries",
                {
                    "$select": "name,userqueryid,fetchxml,querytype",
                    "$filter": f"returnedtypecode eq '{logical}'",
                },
                True,
            ),
        )
        views: List[ViewDefinition] = []
        for url, params, is_user in sources:
            try:
                data = self._get_json(url, params=params)
            except HttpError as e:
                logger.warning("Listing %s for '%s' failed: %s", url.rsplit("/", 1)[-1], logical, e.message)
                continue
            items = data.get("value", []) if isinstance(data, dict) else []
            views.extend(ViewDefinition.from_api_response(v, is_user) for v in items if isinstance(v, dict))
        return sorted(views, key=lambda v: v.name.lower())

    # --------------------------------------------------------------- query
    def _query_url(self, query: str) -> str:
        q = (query or "").strip()
        if not q:
            raise ValidationError("query is required", subcode=VALIDATION_NAME_EMPTY)
        if q.lower().startswith("http"):
            return q
        return f"{self.api}/{q.lstrip('/')}"

    def execute_query(self, query: str) -> QueryPage:
        """
        Execute one compiled query (or continuation link) and return a single page.

        :param query: ``<entitySetName>?<query string>`` or a fully qualified URL such as ``@odata.nextLink``.
        :type query: str
        :raises ~dataverse_query.core.errors.QueryExecutionError: On a non-2xx response. Not retried.
        """
        url = self._query_url(query)
        headers = self._headers()
        if self.config.page_size is not None and int(self.config.page_size) > 0:
            prefer = [headers["Prefer"]] if "Prefer" in headers else []
            prefer.append(f"odata.maxpagesize={int(self.config.page_size)}")
            headers["Prefer"] = ",".join(prefer)
        logger.debug("GET %s", url)
        r = self._request("get", url, headers=headers)
        self._raise_for_status(r, QueryExecutionError)
        try:
            body = r.json()
        except ValueError:
            body = {}
        return QueryPage.from_api_response(body)


def _parse_option_set(option_set: Any) -> List[OptionSetValue]:
    if not isinstance(option_set, dict):
        return []

    def _text(opt: Dict[str, Any], fallback: str) -> str:
        label = opt.get("Label")
        if isinstance(label, dict):
            user = label.get("UserLocalizedLabel")
            if isinstance(user, dict) and user.get("Label"):
                return user["Label"]
        return fallback

    options = option_set.get("Options")
    if isinstance(options, list):
        return [
            OptionSetValue(value=o.get("Value"), label=_text(o, str(o.get("Value"))))
            for o in options
            if isinstance(o, dict)
        ]
    out: List[OptionSetValue] = []
    for key, fallback in (("FalseOption", "No"), ("TrueOption", "Yes")):
        opt = option_set.get(key)
        if isinstance(opt, dict):
            out.append(OptionSetValue(value=opt.get("Value"), label=_text(opt, fallback)))
    return out
