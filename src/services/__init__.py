"""Services layer - pipeline orchestration for the terrain consumer."""
from services.terrain_service import (
    TerrainBuildResult,
    TerrainBuildService,
    build_layer_weights,
)

__all__ = [
    'TerrainBuildResult',
    'TerrainBuildService',
    'build_layer_weights',
]
