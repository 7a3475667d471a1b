"""
Configuration for compilation and layout.

All knobs are pydantic models with validated defaults. `load_settings()`
overlays SCHEMAGRAPH_* environment variables on top of the defaults so the
server and the CLI can be tuned without code changes.
"""

import os
from enum import Enum
from typing import Mapping, Optional
from pydantic import BaseModel, Field


class GroupingMode(str, Enum):
    """How the properties of an object are materialized."""
    EXPANDED = "expanded"  # one box per property, overflow grouping
    GROUPED = "grouped"    # one object-group box per object


class DepthMode(str, Enum):
    """How the max_depth budget is counted."""
    RELATIVE = "relative"  # resets at every explicit expansion
    ABSOLUTE = "absolute"  # counted from the root


class Orientation(str, Enum):
    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"


class TruncationPolicy(str, Enum):
    """What replaces an elided pass-through chain."""
    RECONNECT = "reconnect"            # parent -> child edge, child annotated
    REPRESENTATIVE = "representative"  # one truncated-chain box in between


class CompileOptions(BaseModel):
    """Options for the schema graph compiler."""
    grouping_mode: GroupingMode = GroupingMode.EXPANDED
    max_depth: int = Field(default=3, ge=1)
    max_individual: int = Field(default=5, ge=1)
    max_individual_schemas: int = Field(default=5, ge=1)
    depth_mode: DepthMode = DepthMode.RELATIVE


class TreeLayoutConfig(BaseModel):
    """Spacing for the tree layout engine."""
    horizontal_gap: float = Field(default=40, ge=0)  # between siblings
    vertical_gap: float = Field(default=100, ge=0)   # between parent and children
    min_node_width: float = Field(default=150, gt=0)
    min_node_height: float = Field(default=50, gt=0)
    root_x: float = 0
    root_y: float = 0
    orientation: Orientation = Orientation.VERTICAL


class CollisionConfig(BaseModel):
    """Parameters of the collision resolver."""
    enabled: bool = True
    min_distance: float = Field(default=30, ge=0)      # minimum gap between node edges
    iterations: int = Field(default=50, ge=0)          # max resolution passes
    damping: float = Field(default=0.7, ge=0, le=1)    # share of movement applied
    upward_resistance: float = Field(default=0.1, ge=0, le=1)  # share of upward movement allowed
    animation_duration: float = Field(default=300, ge=0)  # ms


class TruncationConfig(BaseModel):
    """Ancestral truncation post-process."""
    enabled: bool = False
    policy: TruncationPolicy = TruncationPolicy.REPRESENTATIVE
    min_chain_length: int = Field(default=2, ge=1)


class DiagramSettings(BaseModel):
    """Everything the pipeline needs besides the document and visibility."""
    compile: CompileOptions = Field(default_factory=CompileOptions)
    layout: TreeLayoutConfig = Field(default_factory=TreeLayoutConfig)
    collision: CollisionConfig = Field(default_factory=CollisionConfig)
    truncation: TruncationConfig = Field(default_factory=TruncationConfig)
    cache_size: int = Field(default=32, ge=0)

    def merged(self, overrides: Optional[Mapping]) -> "DiagramSettings":
        """Return a copy with a partial nested dict applied on top."""
        if not overrides:
            return self
        data = self.model_dump()
        for section, values in overrides.items():
            if isinstance(values, Mapping) and isinstance(data.get(section), dict):
                data[section].update(values)
            else:
                data[section] = values
        return DiagramSettings.model_validate(data)


ENV_PREFIX = "SCHEMAGRAPH_"

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(value: str) -> bool:
    return value.strip().lower() in _TRUTHY


def load_settings(environ: Optional[Mapping[str, str]] = None) -> DiagramSettings:
    """
    Build settings from defaults plus SCHEMAGRAPH_* environment variables.

    Recognized variables: MAX_DEPTH, MAX_INDIVIDUAL, GROUPING_MODE, DEPTH_MODE,
    TRUNCATE, TRUNCATION_POLICY, COLLISIONS, CACHE_SIZE.
    """
    env = os.environ if environ is None else environ

    def get(name: str) -> Optional[str]:
        return env.get(f"{ENV_PREFIX}{name}")

    overrides: dict[str, dict] = {"compile": {}, "collision": {}, "truncation": {}}

    if get("MAX_DEPTH"):
        overrides["compile"]["max_depth"] = int(get("MAX_DEPTH"))
    if get("MAX_INDIVIDUAL"):
        overrides["compile"]["max_individual"] = int(get("MAX_INDIVIDUAL"))
    if get("GROUPING_MODE"):
        overrides["compile"]["grouping_mode"] = get("GROUPING_MODE")
    if get("DEPTH_MODE"):
        overrides["compile"]["depth_mode"] = get("DEPTH_MODE")
    if get("TRUNCATE"):
        overrides["truncation"]["enabled"] = _env_flag(get("TRUNCATE"))
    if get("TRUNCATION_POLICY"):
        overrides["truncation"]["policy"] = get("TRUNCATION_POLICY")
    if get("COLLISIONS"):
        overrides["collision"]["enabled"] = _env_flag(get("COLLISIONS"))

    settings = DiagramSettings().merged(overrides)
    if get("CACHE_SIZE"):
        settings = settings.model_copy(update={"cache_size": int(get("CACHE_SIZE"))})
    return settings
