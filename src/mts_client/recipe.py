"""
Tileset recipes.
"""

from dataclasses import dataclass, field
from typing import Any

from mts_client.errors import ValidationError

RECIPE_VERSION = 1
MIN_ZOOM = 0
MAX_ZOOM = 16


def source_uri(username: str, source_id: str) -> str:
    """Return the ``mapbox://tileset-source/...`` URI of a tileset source."""
    return f"mapbox://tileset-source/{username}/{source_id}"


@dataclass(frozen=True)
class RecipeLayer:
    """Settings for a single source layer."""

    source: str
    """URI of the tileset source, see ``source_uri``."""

    minzoom: int = 0
    maxzoom: int = 10

    def __post_init__(self) -> None:
        if not self.source:
            raise ValidationError("recipe layer source is required")
        if not MIN_ZOOM <= self.minzoom <= self.maxzoom <= MAX_ZOOM:
            raise ValidationError(
                f"zoom range must satisfy {MIN_ZOOM} <= minzoom <= maxzoom <= {MAX_ZOOM}, "
                f"got {self.minzoom}-{self.maxzoom}"
            )

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.source, "minzoom": self.minzoom, "maxzoom": self.maxzoom}


@dataclass(frozen=True)
class TilesetRecipe:
    """Instructions on how a tileset is generated from its sources."""

    layers: dict[str, RecipeLayer] = field(default_factory=dict)
    version: int = RECIPE_VERSION

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation sent to the API."""
        return {
            "version": self.version,
            "layers": {name: layer.to_dict() for name, layer in self.layers.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TilesetRecipe":
        """
        Build a recipe from its JSON representation.

        Only ``source``, ``minzoom`` and ``maxzoom`` of each layer are kept;
        pass the raw dict to the client instead to send other layer options.
        """
        layers = data.get("layers")
        if not isinstance(layers, dict) or not layers:
            raise ValidationError("recipe must contain at least one layer")

        parsed: dict[str, RecipeLayer] = {}
        for name, layer in layers.items():
            if not isinstance(layer, dict):
                raise ValidationError(f"recipe layer {name!r} must be an object")
            try:
                minzoom = int(layer.get("minzoom", 0))
                maxzoom = int(layer.get("maxzoom", 10))
            except (TypeError, ValueError) as e:
                raise ValidationError(f"recipe layer {name!r} has a non-integer zoom") from e
            parsed[name] = RecipeLayer(
                source=layer.get("source", ""),
                minzoom=minzoom,
                maxzoom=maxzoom,
            )
        return cls(layers=parsed, version=int(data.get("version", RECIPE_VERSION)))


def build_recipe(
    username: str,
    source_id: str,
    layer_name: str = "data",
    minzoom: int = 0,
    maxzoom: int = 10,
) -> TilesetRecipe:
    """Build a single-layer recipe reading from one of the user's sources."""
    if not source_id:
        raise ValidationError("source_id is required")
    if not layer_name:
        raise ValidationError("layer_name is required")
    return TilesetRecipe(
        layers={
            layer_name: RecipeLayer(
                source=source_uri(username, source_id),
                minzoom=minzoom,
                maxzoom=maxzoom,
            )
        }
    )


def recipe_payload(recipe: "TilesetRecipe | dict[str, Any]") -> dict[str, Any]:
    """Return the JSON body for a recipe given as a dataclass or a raw dict."""
    if isinstance(recipe, TilesetRecipe):
        return recipe.to_dict()
    return recipe
