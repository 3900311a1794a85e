# wadengine

A pure-Python toolkit for classic WAD game data. It reads levels and their
GL-node BSP trees, builds mesh data for them and runs a small amount of
first-person gameplay logic. It has no runtime dependencies.

## Modules

- `wadengine.vector`: immutable `Vec2`, `Vec3` and `Vec4` dataclasses with
  `+`, `-`, `dot`, `length`, `scale`, and for `Vec3` also `normalize` and
  `cross`; plus `clamp(value, low, high)`.
- `wadengine.matrix`: an immutable 4×4 `Mat4` stored as rows, with the
  translation in the last row (points are row vectors multiplied from the
  left). Matrices compose with `a @ b`, and `flat()` gives the sixteen values
  in storage order. Builders: `identity`, `translate`, `scale`, `scale_xyz`,
  `rotate`, `look_at`, `perspective` and `ortho`.
- `wadengine.names`: `compare_nocase` and `compare_nocase_n` compare lump and
  texture names ignoring ASCII case, stopping at a NUL.
- `wadengine.wad`: `parse_wad(data)` and `load_wad(path)` return a `Wad`,
  a list of `Lump`s. `Wad.find_lump` looks a lump up by name (or returns
  `None`); `read_playpal`, `read_flats`, `read_patch`, `read_patches` and
  `read_textures` decode palettes, 64×64 flats (`FlatTexture`), column-post
  pictures (`Patch`) and composite wall textures (`WallTexture`). Errors
  raise `WadError`.
- `wadengine.level`: `read_level(wad, name, textures)` returns a `Level`
  (vertices, `Linedef`s, `Thing`s, `Sidedef`s, `Sector`s and bounds);
  `read_gl_level(wad, name)` reads version 2 GL nodes into a `GLLevel`
  (`GLSegment`, `GLSubsector`, `GLNode`). `find_sector(level, gl_level,
  position)` walks the BSP tree and returns the containing `Sector`, or
  `None` when the data leads nowhere valid. Errors raise `LevelError`.
- `wadengine.textures`: `array_size` gives the layer size of a texture array
  holding all wall textures, `wall_max_coords` the fraction of a layer each
  texture covers, and `cubemap_faces` builds the six faces (keyed by
  `CubeFace`) of a sky cube map from one wall texture.
- `wadengine.meshgen`: `generate_meshes(level, gl_level, textures)` takes a
  `TextureSet` and returns a `Scene`: a tree of `DrawNode`s whose leaves hold
  a `Mesh` (a list of `Vertex`, triangle indices and `TexAnimRange`s) for
  each subsector with at least three segments, the stencil quad matrices
  marking where the sky shows, and the maximum sector height. Inconsistent
  geometry raises `ValueError`.
- `wadengine.gameplay`: `BulletSystem` (a bounded pool of `Bullet`s),
  `EnemySystem` (`Enemy`s that chase a `Player` and attack at close range),
  `Hud` (health bar and damage-flash rectangles), `WeaponSystem` (carried
  weapons, switching and bobbing) and `is_monster`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
from wadengine.wad import load_wad
from wadengine.level import read_level, read_gl_level, find_sector
from wadengine.meshgen import TextureSet, generate_meshes
from wadengine.vector import Vec2

wad = load_wad("levels.wad")
textures = wad.read_textures("TEXTURE1")
flats = wad.read_flats()
level = read_level(wad, "E1M1", textures)
gl_level = read_gl_level(wad, "GL_E1M1")

sector = find_sector(level, gl_level, Vec2(1056.0, -3616.0))
if sector is not None:
    print(sector.floor, sector.ceiling)

scene = generate_meshes(level, gl_level, TextureSet(textures, len(flats)))
print(len(scene.stencil_quads), scene.max_sector_height)
```

## What it does not do

There is no renderer, window, input handling or game loop, and no command
to run. The package produces vertex and index data, matrices, texture
layouts and game state; uploading them to a graphics API, compiling shaders,
loading sprite images and drawing are left to the caller. Walkability and
"inside the map" checks used by `EnemySystem` are passed in as callables.