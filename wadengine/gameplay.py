"""Game logic for bullets, enemies, the HUD and the player's weapon."""

from __future__ import annotations

import enum
import math
import random
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from wadengine.level import Thing
from wadengine.matrix import Mat4, scale, scale_xyz, translate
from wadengine.vector import Vec2, Vec3, Vec4

MONSTER_TYPES = frozenset({3001, 3002, 3003, 3004, 3005, 58})

MAX_BULLETS = 128
BULLET_SPEED = 10.0
BULLET_LIFETIME = 3.0
BULLET_SCALE = 0.5

MAX_ENEMIES = 16
ENEMY_HEALTH = 100
ENEMY_SPEED = 1.5
ENEMY_SCALE = 50.0
ATTACK_RANGE = 1.5
ATTACK_INTERVAL = 1.0
ATTACK_DAMAGE = 10
DAMAGE_FLASH = 0.3
MIN_CHASE_DISTANCE = 0.01
SPAWN_MIN_DISTANCE = 5.0
SPAWN_DISTANCE_RANGE = 10.0

MAX_HEALTH = 100
HEALTH_BAR_X = 0.05
HEALTH_BAR_Y = 0.9
HEALTH_BAR_WIDTH = 0.4
HEALTH_BAR_HEIGHT = 0.05
HEALTH_BAR_BACKGROUND = Vec4(0.2, 0.2, 0.2, 1.0)
HEALTH_BAR_FILL = Vec4(1.0, 0.0, 0.0, 1.0)

MAX_WEAPONS = 8
WEAPON_BOB_RATE = 3.0
WEAPON_BOB_AMPLITUDE = 0.02

HudRect = tuple[float, float, float, float, Vec4]


def is_monster(thing_type: int) -> bool:
    """Return whether a thing type number denotes a monster."""
    return thing_type in MONSTER_TYPES


@dataclass
class Player:
    """The player's health and the remaining time of the red damage flash."""

    health: int = MAX_HEALTH
    damage_flash_timer: float = 0.0


@dataclass
class Bullet:
    """A projectile in flight."""

    position: Vec3
    velocity: Vec3
    lifetime: float = BULLET_LIFETIME


@dataclass
class BulletSystem:
    """A bounded pool of bullets moving in straight lines until they expire."""

    capacity: int = MAX_BULLETS
    bullets: list[Bullet] = field(default_factory=list)

    def fire(self, position: Vec3, forward: Vec3) -> Optional[Bullet]:
        """Launch a bullet from position along forward; None if the pool is full."""
        if len(self.bullets) >= self.capacity:
            return None
        bullet = Bullet(position, forward.scale(BULLET_SPEED))
        self.bullets.append(bullet)
        return bullet

    def update(self, dt: float) -> None:
        """Advance every bullet by dt seconds and drop those that expired."""
        for bullet in self.bullets:
            bullet.position = bullet.position + bullet.velocity.scale(dt)
            bullet.lifetime -= dt
        self.bullets = [bullet for bullet in self.bullets if bullet.lifetime > 0.0]

    def active(self) -> list[Bullet]:
        """Return the bullets still in flight."""
        return list(self.bullets)

    def model(self, bullet: Bullet) -> Mat4:
        """Return the model matrix used to draw a bullet."""
        return translate(bullet.position) @ scale(
            Vec3(BULLET_SCALE, BULLET_SCALE, BULLET_SCALE)
        )


class EnemyState(enum.Enum):
    """What an enemy is doing."""

    IDLE = "idle"
    ATTACK = "attack"
    HURT = "hurt"
    DEAD = "dead"


@dataclass
class Enemy:
    """A monster on the map plane."""

    position: Vec2
    health: int = ENEMY_HEALTH
    attack_timer: float = 0.0
    is_attacking: bool = False
    state: EnemyState = EnemyState.IDLE
    state_timer: float = 0.0
    death_frame: int = 0

    @property
    def alive(self) -> bool:
        return self.health > 0


@dataclass
class EnemySystem:
    """Enemies that chase the player and strike when close."""

    capacity: int = MAX_ENEMIES
    speed: float = ENEMY_SPEED
    enemies: list[Enemy] = field(default_factory=list)

    def spawn_from_things(self, things: Iterable[Thing]) -> int:
        """Replace all enemies with one at each thing, up to capacity; return the count."""
        self.enemies = []
        for thing in things:
            if len(self.enemies) >= self.capacity:
                break
            self.enemies.append(Enemy(Vec2(thing.position.x, thing.position.y)))
        return len(self.enemies)

    def spawn_random(
        self,
        count: int,
        player_position: Vec3,
        is_inside: Callable[[Vec2], bool],
        rng: Optional[random.Random] = None,
    ) -> int:
        """Try count random spots 5 to 15 units around the player; return how many spawned."""
        rng = rng or random.Random()
        spawned = 0
        for _ in range(count):
            if len(self.enemies) >= self.capacity:
                break
            angle = rng.random() * 2.0 * math.pi
            distance = SPAWN_MIN_DISTANCE + rng.random() * SPAWN_DISTANCE_RANGE
            spot = Vec2(
                player_position.x + math.cos(angle) * distance,
                player_position.z + math.sin(angle) * distance,
            )
            if is_inside(spot):
                self.enemies.append(Enemy(spot))
                spawned += 1
        return spawned

    def update(
        self,
        dt: float,
        player: Player,
        player_position: Vec3,
        is_walkable: Callable[[Vec2], bool],
    ) -> None:
        """Move living enemies towards the player and let close ones attack."""
        for enemy in self.enemies:
            if not enemy.alive:
                continue
            dx = player_position.x - enemy.position.x
            dy = player_position.z - enemy.position.y
            distance = math.hypot(dx, dy)

            if distance > MIN_CHASE_DISTANCE:
                step = self.speed * dt / distance
                target = Vec2(enemy.position.x + dx * step, enemy.position.y + dy * step)
                if is_walkable(target):
                    enemy.position = target

            if distance < ATTACK_RANGE:
                enemy.is_attacking = True
                enemy.state = EnemyState.ATTACK
                enemy.attack_timer += dt
                if enemy.attack_timer >= ATTACK_INTERVAL:
                    player.health = max(player.health - ATTACK_DAMAGE, 0)
                    player.damage_flash_timer = DAMAGE_FLASH
                    enemy.attack_timer = 0.0
            else:
                enemy.is_attacking = False
                enemy.state = EnemyState.IDLE
                enemy.attack_timer = 0.0

    def get(self, index: int) -> Optional[Enemy]:
        """Return the enemy at index, or None when out of range."""
        if 0 <= index < len(self.enemies):
            return self.enemies[index]
        return None

    def count(self) -> int:
        """Return the number of enemies, living or dead."""
        return len(self.enemies)

    def damage(self, enemy: Optional[Enemy], amount: int) -> None:
        """Take health from an enemy, never below zero."""
        if enemy is None:
            return
        enemy.health = max(enemy.health - amount, 0)
        if enemy.health == 0:
            enemy.state = EnemyState.DEAD

    def model(self, enemy: Enemy) -> Mat4:
        """Return the model matrix used to draw an enemy sprite."""
        placed = translate(Vec3(enemy.position.x, 0.0, enemy.position.y))
        return scale_xyz(placed, Vec3(ENEMY_SCALE, ENEMY_SCALE, ENEMY_SCALE))


@dataclass
class Hud:
    """The health bar and damage flash, in unit screen coordinates."""

    def health_fraction(self, player: Player) -> float:
        """Return the player's health as a fraction of full, never negative."""
        return max(player.health / MAX_HEALTH, 0.0)

    def rects(self, player: Player) -> list[HudRect]:
        """Return the rectangles to draw as (x, y, width, height, colour), back to front."""
        fraction = self.health_fraction(player)
        rects: list[HudRect] = [
            (HEALTH_BAR_X, HEALTH_BAR_Y, HEALTH_BAR_WIDTH, HEALTH_BAR_HEIGHT, HEALTH_BAR_BACKGROUND),
            (
                HEALTH_BAR_X,
                HEALTH_BAR_Y,
                HEALTH_BAR_WIDTH * fraction,
                HEALTH_BAR_HEIGHT,
                HEALTH_BAR_FILL,
            ),
        ]
        if player.damage_flash_timer > 0.0:
            rects.append((0.0, 0.0, 1.0, 1.0, Vec4(1.0, 0.0, 0.0, player.damage_flash_timer)))
        return rects

    def update(self, player: Player, dt: float) -> None:
        """Let the damage flash fade by dt seconds."""
        if player.damage_flash_timer > 0.0:
            player.damage_flash_timer = max(player.damage_flash_timer - dt, 0.0)


@dataclass
class WeaponSystem:
    """The weapons the player carries, the one held, and its bobbing motion."""

    weapons: list[str] = field(default_factory=list)
    current_index: int = 0
    bob_timer: float = 0.0
    bob_offset: float = 0.0

    def add_weapon(self, name: str) -> int:
        """Add a weapon and return its id."""
        if len(self.weapons) >= MAX_WEAPONS:
            raise ValueError(f"no more than {MAX_WEAPONS} weapons can be carried")
        self.weapons.append(name)
        return len(self.weapons) - 1

    def update(self, dt: float) -> None:
        """Advance the bobbing motion by dt seconds."""
        self.bob_timer += dt * WEAPON_BOB_RATE
        self.bob_offset = math.sin(self.bob_timer) * WEAPON_BOB_AMPLITUDE

    def switch(self, weapon_id: int) -> None:
        """Hold the weapon with this id; unknown ids are ignored."""
        if 0 <= weapon_id < len(self.weapons):
            self.current_index = weapon_id

    def current(self) -> Optional[str]:
        """Return the name of the held weapon, or None when none is carried."""
        if self.current_index < len(self.weapons):
            return self.weapons[self.current_index]
        return None