"""
Secure Catalog

Catalog decorator that filters every lookup through the access manager.

Visibility of an object the principal cannot read depends on the catalog mode:
- HIDE: the object does not exist
- CHALLENGE: the object is returned as a metadata-only view
- MIXED: hidden from listings, metadata-only view on direct lookup by name

During capabilities listings the advertised flag is honored too, and layer
groups are returned with their children filtered (see
`LayerGroupVisibilityPolicy`). The per-request state is passed explicitly as a
`RequestContext`.
"""

import logging
from collections.abc import MutableSequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .access_manager import AccessLimits, ResourceAccessManager, SecurityFilter
from .auth.principal import Principal
from .catalog import Catalog, CatalogObject, LayerGroupInfo, LayerInfo
from .rule_store import CatalogMode
from .rules import AccessMode

logger = logging.getLogger(__name__)


class LayerGroupVisibilityPolicy(str, Enum):
    """What happens to a layer group whose children all got filtered out"""
    HIDE_EMPTY = "HIDE_EMPTY"  # Hide the group
    HIDE_NEVER = "HIDE_NEVER"  # Return it with an empty child list

    @classmethod
    def parse(cls, value: str) -> "LayerGroupVisibilityPolicy":
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"Unknown layer group visibility policy: {value}")


class WrapperPolicy(str, Enum):
    """How a filtered object is handed out"""
    HIDDEN = "hidden"
    METADATA = "metadata"
    READ_ONLY = "read_only"
    READ_WRITE = "read_write"


@dataclass(frozen=True)
class RequestContext:
    """
    Request facts the filtering depends on.

    Attributes:
        capabilities: The request is a capabilities listing
        service: Service name (e.g. WMS), informational
        virtual_workspace: Workspace of a virtual service endpoint
        virtual_layer: Layer of a layer-specific virtual service endpoint
    """
    capabilities: bool = False
    service: Optional[str] = None
    virtual_workspace: Optional[str] = None
    virtual_layer: Optional[str] = None

    @classmethod
    def capabilities_request(cls, **kwargs) -> "RequestContext":
        return cls(capabilities=True, **kwargs)


DEFAULT_CONTEXT = RequestContext()


class SecuredResource:
    """Metadata-only view of an object the principal cannot read"""

    def __init__(self, delegate: CatalogObject, policy: WrapperPolicy = WrapperPolicy.METADATA):
        self.delegate = delegate
        self.policy = policy

    @property
    def name(self) -> str:
        return self.delegate.name

    @property
    def workspace(self) -> Optional[str]:
        return self.delegate.workspace

    @property
    def data_accessible(self) -> bool:
        return self.policy in (WrapperPolicy.READ_ONLY, WrapperPolicy.READ_WRITE)

    def __eq__(self, other: Any) -> bool:
        return (
            isinstance(other, SecuredResource)
            and other.delegate is self.delegate
            and other.policy == self.policy
        )

    def __hash__(self) -> int:
        return hash((id(self.delegate), self.policy))

    def __repr__(self) -> str:
        return f"SecuredResource({self.delegate!r}, {self.policy.value})"


class FilteredList(MutableSequence):
    """
    Live view over the items of a backing list that passed a filter.

    Reads see only the filtered items. Writes go through to the backing list
    at the corresponding index, so both stay in the same order. `views` maps a
    backing index to the object returned in place of the raw item there.
    """

    def __init__(self, delegate: list, positions: Sequence[int], views: Optional[Mapping[int, Any]] = None):
        self._delegate = delegate
        self._positions = list(positions)
        self._views: Dict[int, Any] = dict(views or {})

    @classmethod
    def from_predicate(cls, delegate: list, predicate: Callable[[Any], bool]) -> "FilteredList":
        return cls(delegate, [i for i, item in enumerate(delegate) if predicate(item)])

    @property
    def delegate(self) -> list:
        return self._delegate

    def _item(self, position: int) -> Any:
        if position in self._views:
            return self._views[position]
        return self._delegate[position]

    def _shift(self, start: int, offset: int) -> None:
        """Move every tracked backing index at or after `start` by `offset`"""
        self._positions = [p + offset if p >= start else p for p in self._positions]
        self._views = {p + offset if p >= start else p: view for p, view in self._views.items()}

    def __len__(self) -> int:
        return len(self._positions)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [self._item(p) for p in self._positions[index]]
        return self._item(self._positions[index])

    def __setitem__(self, index: int, value: Any) -> None:
        if isinstance(index, slice):
            raise TypeError("FilteredList does not support slice assignment, set items one by one")
        position = self._positions[index]
        self._delegate[position] = value
        self._views.pop(position, None)

    def __delitem__(self, index: int) -> None:
        if isinstance(index, slice):
            for i in sorted(range(len(self._positions))[index], reverse=True):
                del self[i]
            return
        removed = self._positions.pop(index)
        del self._delegate[removed]
        self._views.pop(removed, None)
        self._shift(removed + 1, -1)

    def insert(self, index: int, value: Any) -> None:
        size = len(self._positions)
        if index < 0:
            index = max(size + index, 0)
        index = min(index, size)

        target = self._positions[index] if index < size else len(self._delegate)
        self._delegate.insert(target, value)
        self._shift(target, 1)
        self._positions.insert(index, target)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, (list, FilteredList)):
            return list(self) == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"FilteredList({list(self)!r})"


class SecuredLayerGroup:
    """
    Layer group whose `layers` / `styles` only expose the visible children.

    Nested groups that were filtered themselves are passed in `nested`, keyed
    by their index in the backing group, and are returned in place of the raw
    child.
    """

    def __init__(
        self,
        delegate: LayerGroupInfo,
        positions: Sequence[int],
        nested: Optional[Mapping[int, "SecuredLayerGroup"]] = None
    ):
        self.delegate = delegate
        self.layers = FilteredList(delegate.layers, positions, nested)
        self.styles = FilteredList(delegate.styles, positions)

    @property
    def name(self) -> str:
        return self.delegate.name

    @property
    def workspace(self) -> Optional[str]:
        return self.delegate.workspace

    @property
    def advertised(self) -> bool:
        return self.delegate.advertised

    @property
    def prefixed_name(self) -> str:
        return self.delegate.prefixed_name

    def __repr__(self) -> str:
        return f"SecuredLayerGroup({self.prefixed_name}, layers={len(self.layers)}/{len(self.delegate.layers)})"


Secured = Union[CatalogObject, SecuredResource, SecuredLayerGroup]


class SecureCatalog:
    """
    Catalog facade that only returns what a principal may see.

    Every call takes the principal and, optionally, the request context.
    """

    def __init__(
        self,
        catalog: Catalog,
        access_manager: ResourceAccessManager,
        layer_group_policy: LayerGroupVisibilityPolicy = LayerGroupVisibilityPolicy.HIDE_EMPTY
    ):
        self.catalog = catalog
        self.access_manager = access_manager
        self.layer_group_policy = layer_group_policy

    # =========================================================================
    # Policy
    # =========================================================================

    @staticmethod
    def get_wrapper_policy(
        limits: AccessLimits,
        ctx: RequestContext = DEFAULT_CONTEXT,
        by_name: bool = False
    ) -> WrapperPolicy:
        """Map access limits to how the object is handed out"""
        if limits.readable:
            return WrapperPolicy.READ_WRITE if limits.writable else WrapperPolicy.READ_ONLY
        if limits.mode == CatalogMode.CHALLENGE:
            return WrapperPolicy.METADATA
        if limits.mode == CatalogMode.MIXED and by_name and not ctx.capabilities:
            return WrapperPolicy.METADATA
        return WrapperPolicy.HIDDEN

    def can_access(
        self,
        principal: Optional[Principal],
        resource: CatalogObject,
        mode: AccessMode = AccessMode.READ
    ) -> bool:
        return self.access_manager.can_access(principal, resource, mode)

    # =========================================================================
    # Filtering
    # =========================================================================

    def _is_advertised(self, obj: CatalogObject, ctx: RequestContext) -> bool:
        if not ctx.capabilities:
            return True
        if isinstance(obj, LayerInfo):
            return obj.advertised or (
                ctx.virtual_workspace == obj.workspace and ctx.virtual_layer == obj.name
            )
        if isinstance(obj, LayerGroupInfo):
            return obj.advertised
        return True

    def _secure(
        self,
        obj: Optional[CatalogObject],
        security_filter: SecurityFilter,
        ctx: RequestContext,
        by_name: bool = False
    ) -> Optional[Secured]:
        if obj is None:
            return None
        if not self._is_advertised(obj, ctx):
            logger.debug(f"Hiding non advertised {obj!r} from capabilities")
            return None

        policy = self.get_wrapper_policy(security_filter.limits(obj), ctx, by_name)
        if policy == WrapperPolicy.HIDDEN:
            return None
        if policy == WrapperPolicy.METADATA:
            return SecuredResource(obj, policy)

        if isinstance(obj, LayerGroupInfo) and ctx.capabilities:
            return self._filter_group(obj, security_filter, ctx)
        return obj

    def _secure_child(self, child: Any, security_filter: SecurityFilter, ctx: RequestContext) -> Optional[Any]:
        """Visible form of a layer group child, None when it is filtered out"""
        if child is None or not self._is_advertised(child, ctx):
            return None
        if not security_filter.limits(child).readable:
            return None
        if isinstance(child, LayerGroupInfo):
            return self._filter_group(child, security_filter, ctx)
        return child

    def _filter_group(
        self,
        group: LayerGroupInfo,
        security_filter: SecurityFilter,
        ctx: RequestContext
    ) -> Optional[Union[LayerGroupInfo, SecuredLayerGroup]]:
        positions: List[int] = []
        nested: Dict[int, SecuredLayerGroup] = {}
        for i, child in enumerate(group.layers):
            secured = self._secure_child(child, security_filter, ctx)
            if secured is None:
                continue
            positions.append(i)
            if secured is not child:
                nested[i] = secured

        if len(positions) == len(group.layers) and not nested:
            return group

        if not positions and self.layer_group_policy == LayerGroupVisibilityPolicy.HIDE_EMPTY:
            logger.debug(f"Hiding layer group {group.prefixed_name}: no visible children")
            return None
        return SecuredLayerGroup(group, positions, nested)

    def _filter_list(
        self,
        principal: Optional[Principal],
        items: List[CatalogObject],
        ctx: Optional[RequestContext]
    ) -> List[Secured]:
        ctx = ctx or DEFAULT_CONTEXT
        security_filter = self.access_manager.get_security_filter(principal)
        secured = (self._secure(obj, security_filter, ctx) for obj in items)
        return [obj for obj in secured if obj is not None]

    def _filter_one(
        self,
        principal: Optional[Principal],
        obj: Optional[CatalogObject],
        ctx: Optional[RequestContext]
    ) -> Optional[Secured]:
        security_filter = self.access_manager.get_security_filter(principal)
        return self._secure(obj, security_filter, ctx or DEFAULT_CONTEXT, by_name=True)

    # =========================================================================
    # Catalog lookups
    # =========================================================================

    def list(
        self,
        principal: Optional[Principal],
        resource_class: type,
        base_filter: Optional[Callable[[CatalogObject], bool]] = None,
        ctx: Optional[RequestContext] = None
    ) -> List[Secured]:
        """
        All visible objects of one kind.

        Args:
            principal: Principal, None for anonymous
            resource_class: WorkspaceInfo, LayerInfo, LayerGroupInfo or StyleInfo
            base_filter: Caller predicate, applied before the security filter
            ctx: Request context
        """
        items = self.catalog.list(resource_class)
        if base_filter is not None:
            items = [obj for obj in items if base_filter(obj)]
        return self._filter_list(principal, items, ctx)

    def get_workspaces(self, principal: Optional[Principal], ctx: Optional[RequestContext] = None) -> List[Secured]:
        return self._filter_list(principal, self.catalog.get_workspaces(), ctx)

    def get_workspace_by_name(
        self,
        principal: Optional[Principal],
        name: str,
        ctx: Optional[RequestContext] = None
    ) -> Optional[Secured]:
        return self._filter_one(principal, self.catalog.get_workspace_by_name(name), ctx)

    def get_layers(
        self,
        principal: Optional[Principal],
        workspace: Optional[str] = None,
        ctx: Optional[RequestContext] = None
    ) -> List[Secured]:
        return self._filter_list(principal, self.catalog.get_layers(workspace), ctx)

    def get_layer_by_name(
        self,
        principal: Optional[Principal],
        name: str,
        workspace: Optional[str] = None,
        ctx: Optional[RequestContext] = None
    ) -> Optional[Secured]:
        return self._filter_one(principal, self.catalog.get_layer_by_name(name, workspace), ctx)

    def get_layer_groups(
        self,
        principal: Optional[Principal],
        workspace: Optional[str] = None,
        ctx: Optional[RequestContext] = None
    ) -> List[Secured]:
        return self._filter_list(principal, self.catalog.get_layer_groups(workspace), ctx)

    def get_layer_group_by_name(
        self,
        principal: Optional[Principal],
        name: str,
        workspace: Optional[str] = None,
        ctx: Optional[RequestContext] = None
    ) -> Optional[Secured]:
        return self._filter_one(principal, self.catalog.get_layer_group_by_name(name, workspace), ctx)

    def get_styles(
        self,
        principal: Optional[Principal],
        workspace: Optional[str] = None,
        ctx: Optional[RequestContext] = None
    ) -> List[Secured]:
        return self._filter_list(principal, self.catalog.get_styles(workspace), ctx)

    def get_style_by_name(
        self,
        principal: Optional[Principal],
        name: str,
        workspace: Optional[str] = None,
        ctx: Optional[RequestContext] = None
    ) -> Optional[Secured]:
        return self._filter_one(principal, self.catalog.get_style_by_name(name, workspace), ctx)
