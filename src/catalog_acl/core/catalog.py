"""
Catalog Model

Read-only view of the catalog objects the access-control engine works on:
workspaces, layers, layer groups and styles. Only identity (name, workspace)
and the advertised flag matter here; data access lives elsewhere.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkspaceInfo:
    """Workspace (top level namespace)"""
    name: str

    @property
    def workspace(self) -> Optional[str]:
        return self.name


@dataclass(frozen=True)
class LayerInfo:
    """Published layer"""
    name: str
    workspace: str
    advertised: bool = True
    enabled: bool = True

    @property
    def prefixed_name(self) -> str:
        return f"{self.workspace}:{self.name}"


@dataclass(frozen=True)
class StyleInfo:
    """Style, global when workspace is None"""
    name: str
    workspace: Optional[str] = None

    @property
    def prefixed_name(self) -> str:
        return f"{self.workspace}:{self.name}" if self.workspace else self.name


# A layer group publishes layers and nested groups
Publishable = Union[LayerInfo, "LayerGroupInfo"]


@dataclass(eq=False)
class LayerGroupInfo:
    """
    Layer group, global when workspace is None.

    `layers` and `styles` are parallel lists: `styles[i]` renders `layers[i]`
    (None means the layer default style).
    """
    name: str
    workspace: Optional[str] = None
    layers: List[Publishable] = field(default_factory=list)
    styles: List[Optional[StyleInfo]] = field(default_factory=list)
    advertised: bool = True

    def __post_init__(self):
        if len(self.styles) < len(self.layers):
            self.styles.extend([None] * (len(self.layers) - len(self.styles)))

    @property
    def prefixed_name(self) -> str:
        return f"{self.workspace}:{self.name}" if self.workspace else self.name

    def __repr__(self) -> str:
        return f"LayerGroupInfo({self.prefixed_name}, layers={len(self.layers)})"


CatalogObject = Union[WorkspaceInfo, LayerInfo, LayerGroupInfo, StyleInfo]


def split_prefixed_name(name: str, workspace: Optional[str] = None) -> Tuple[Optional[str], str]:
    """Split `ws:name` into (workspace, name); an explicit workspace wins"""
    if workspace is None and ":" in name:
        prefix, _, local = name.partition(":")
        return prefix, local
    return workspace, name


class Catalog(ABC):
    """
    Catalog lookups consumed by the security layer.

    Lookups return None for unknown names; they never raise.
    """

    @abstractmethod
    def get_workspaces(self) -> List[WorkspaceInfo]:
        pass

    @abstractmethod
    def get_workspace_by_name(self, name: str) -> Optional[WorkspaceInfo]:
        pass

    @abstractmethod
    def get_layers(self, workspace: Optional[str] = None) -> List[LayerInfo]:
        pass

    @abstractmethod
    def get_layer_by_name(self, name: str, workspace: Optional[str] = None) -> Optional[LayerInfo]:
        pass

    @abstractmethod
    def get_layer_groups(self, workspace: Optional[str] = None) -> List[LayerGroupInfo]:
        pass

    @abstractmethod
    def get_layer_group_by_name(self, name: str, workspace: Optional[str] = None) -> Optional[LayerGroupInfo]:
        pass

    @abstractmethod
    def get_styles(self, workspace: Optional[str] = None) -> List[StyleInfo]:
        pass

    @abstractmethod
    def get_style_by_name(self, name: str, workspace: Optional[str] = None) -> Optional[StyleInfo]:
        pass

    def list(self, resource_class: type) -> List[CatalogObject]:
        """All objects of one kind"""
        if resource_class is WorkspaceInfo:
            return list(self.get_workspaces())
        if resource_class is LayerInfo:
            return list(self.get_layers())
        if resource_class is LayerGroupInfo:
            return list(self.get_layer_groups())
        if resource_class is StyleInfo:
            return list(self.get_styles())
        raise TypeError(f"Unsupported catalog resource class: {resource_class!r}")


class InMemoryCatalog(Catalog):
    """Dictionary backed catalog, insertion ordered"""

    def __init__(self):
        self._workspaces: Dict[str, WorkspaceInfo] = {}
        self._layers: Dict[Tuple[str, str], LayerInfo] = {}
        self._groups: Dict[Tuple[Optional[str], str], LayerGroupInfo] = {}
        self._styles: Dict[Tuple[Optional[str], str], StyleInfo] = {}

    # Mutators

    def add_workspace(self, workspace: Union[str, WorkspaceInfo]) -> WorkspaceInfo:
        if isinstance(workspace, str):
            workspace = WorkspaceInfo(workspace)
        self._workspaces[workspace.name] = workspace
        return workspace

    def add_layer(self, layer: LayerInfo) -> LayerInfo:
        if layer.workspace not in self._workspaces:
            self.add_workspace(layer.workspace)
        self._layers[(layer.workspace, layer.name)] = layer
        return layer

    def add_layer_group(self, group: LayerGroupInfo) -> LayerGroupInfo:
        if group.workspace is not None and group.workspace not in self._workspaces:
            self.add_workspace(group.workspace)
        self._groups[(group.workspace, group.name)] = group
        return group

    def add_style(self, style: StyleInfo) -> StyleInfo:
        if style.workspace is not None and style.workspace not in self._workspaces:
            self.add_workspace(style.workspace)
        self._styles[(style.workspace, style.name)] = style
        return style

    def remove(self, obj: CatalogObject) -> bool:
        """Remove an object; returns False when it was not in the catalog"""
        if isinstance(obj, WorkspaceInfo):
            return self._workspaces.pop(obj.name, None) is not None
        if isinstance(obj, LayerInfo):
            return self._layers.pop((obj.workspace, obj.name), None) is not None
        if isinstance(obj, LayerGroupInfo):
            return self._groups.pop((obj.workspace, obj.name), None) is not None
        if isinstance(obj, StyleInfo):
            return self._styles.pop((obj.workspace, obj.name), None) is not None
        return False

    # Lookups

    def get_workspaces(self) -> List[WorkspaceInfo]:
        return list(self._workspaces.values())

    def get_workspace_by_name(self, name: str) -> Optional[WorkspaceInfo]:
        return self._workspaces.get(name)

    def get_layers(self, workspace: Optional[str] = None) -> List[LayerInfo]:
        return [l for l in self._layers.values() if workspace is None or l.workspace == workspace]

    def get_layer_by_name(self, name: str, workspace: Optional[str] = None) -> Optional[LayerInfo]:
        workspace, name = split_prefixed_name(name, workspace)
        if workspace is not None:
            return self._layers.get((workspace, name))
        for layer in self._layers.values():
            if layer.name == name:
                return layer
        return None

    def get_layer_groups(self, workspace: Optional[str] = None) -> List[LayerGroupInfo]:
        return [g for g in self._groups.values() if workspace is None or g.workspace == workspace]

    def get_layer_group_by_name(self, name: str, workspace: Optional[str] = None) -> Optional[LayerGroupInfo]:
        workspace, name = split_prefixed_name(name, workspace)
        return self._groups.get((workspace, name))

    def get_styles(self, workspace: Optional[str] = None) -> List[StyleInfo]:
        return [s for s in self._styles.values() if workspace is None or s.workspace == workspace]

    def get_style_by_name(self, name: str, workspace: Optional[str] = None) -> Optional[StyleInfo]:
        workspace, name = split_prefixed_name(name, workspace)
        return self._styles.get((workspace, name))

    # Serialization

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryCatalog":
        """
        Build a catalog from a plain description.

        Layer group members are `ws:layer` names or names of groups defined
        earlier in the list.
        """
        catalog = cls()
        for ws in data.get("workspaces", []):
            catalog.add_workspace(ws if isinstance(ws, str) else ws["name"])

        for layer_data in data.get("layers", []):
            workspace, name = split_prefixed_name(layer_data["name"], layer_data.get("workspace"))
            catalog.add_layer(LayerInfo(
                name=name,
                workspace=workspace,
                advertised=layer_data.get("advertised", True),
                enabled=layer_data.get("enabled", True),
            ))

        for style_data in data.get("styles", []):
            if isinstance(style_data, str):
                style_data = {"name": style_data}
            workspace, name = split_prefixed_name(style_data["name"], style_data.get("workspace"))
            catalog.add_style(StyleInfo(name=name, workspace=workspace))

        for group_data in data.get("layer_groups", []):
            workspace = group_data.get("workspace")
            style_names = group_data.get("styles", [])
            members = []
            styles: List[Optional[StyleInfo]] = []
            for i, member in enumerate(group_data.get("layers", [])):
                resolved = catalog.get_layer_by_name(member) or catalog.get_layer_group_by_name(member)
                if resolved is None:
                    logger.warning(f"Layer group {group_data['name']}: unknown member {member}")
                    continue
                members.append(resolved)
                style = style_names[i] if i < len(style_names) else None
                styles.append(catalog.get_style_by_name(style) if style else None)
            catalog.add_layer_group(LayerGroupInfo(
                name=group_data["name"],
                workspace=workspace,
                layers=members,
                styles=styles,
                advertised=group_data.get("advertised", True),
            ))
        return catalog

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workspaces": [ws.name for ws in self._workspaces.values()],
            "layers": [
                {"name": l.name, "workspace": l.workspace, "advertised": l.advertised, "enabled": l.enabled}
                for l in self._layers.values()
            ],
            "styles": [{"name": s.name, "workspace": s.workspace} for s in self._styles.values()],
            "layer_groups": [
                {
                    "name": g.name,
                    "workspace": g.workspace,
                    "layers": [member.prefixed_name for member in g.layers],
                    "styles": [s.prefixed_name if s else None for s in g.styles],
                    "advertised": g.advertised,
                }
                for g in self._groups.values()
            ],
        }
