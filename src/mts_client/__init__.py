"""
MTS client - a Python client for the Mapbox Tiling Service API.

Upload line-delimited GeoJSON as tileset sources, create or update tileset
recipes, publish tilesets and poll publish jobs.
"""

from mts_client.client import Client
from mts_client.config import DEFAULT_BASE_URL, Settings
from mts_client.errors import (
    MissingJobIdWarning,
    MTSError,
    NotFoundError,
    OperationError,
    ParseError,
    TilesetAPIError,
    UnexpectedError,
    ValidationError,
)
from mts_client.jobs import JobStatus, PublishJob, PublishJobStage
from mts_client.recipe import RecipeLayer, TilesetRecipe, build_recipe, source_uri
from mts_client.sources import TilesetSourceSummary, iter_feature_lines, write_feature_lines

__version__ = "0.1.0"
__all__ = [
    # Core
    "Client",
    "Settings",
    "DEFAULT_BASE_URL",
    # Recipes and sources
    "TilesetRecipe",
    "RecipeLayer",
    "build_recipe",
    "source_uri",
    "TilesetSourceSummary",
    "iter_feature_lines",
    "write_feature_lines",
    # Jobs
    "PublishJob",
    "PublishJobStage",
    "JobStatus",
    # Errors
    "MTSError",
    "ValidationError",
    "OperationError",
    "NotFoundError",
    "ParseError",
    "UnexpectedError",
    "TilesetAPIError",
    "MissingJobIdWarning",
    # Version
    "__version__",
]
