"""Reading WAD levels and GL nodes, building BSP subsector meshes and running simple first-person game logic."""

__version__ = "0.1.0"