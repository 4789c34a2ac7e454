from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet

from django.conf import settings

from . import file_types

DEFAULT_PLAN = "free"

_BASE_FORMATS = frozenset({file_types.PNG, file_types.JPEG, file_types.WEBP})
_PRO_FORMATS = _BASE_FORMATS | {
    file_types.PDF,
    file_types.POSTSCRIPT,
    file_types.SVG,
    file_types.TIFF,
    file_types.PSD,
}


@dataclass(frozen=True)
class PreflightConfig:
    max_file_size_mb: float
    min_dpi: int = 150
    required_dpi: int = 300
    max_pages: int = 1
    allowed_formats: FrozenSet[str] = field(default_factory=lambda: _BASE_FORMATS)
    require_transparency: bool = False
    min_width: int = 500
    min_height: int = 500
    max_width: int = 20000
    max_height: int = 20000


PLAN_CONFIGS: Dict[str, PreflightConfig] = {
    "free": PreflightConfig(max_file_size_mb=25),
    "starter": PreflightConfig(
        max_file_size_mb=50,
        allowed_formats=_BASE_FORMATS | {file_types.PDF},
    ),
    "pro": PreflightConfig(
        max_file_size_mb=150,
        max_pages=5,
        allowed_formats=_PRO_FORMATS,
    ),
    "enterprise": PreflightConfig(
        max_file_size_mb=150,
        max_pages=10,
        allowed_formats=_PRO_FORMATS,
    ),
}


def get_plan_config(plan: str) -> PreflightConfig:
    """Thresholds for ``plan``, with any PREFLIGHT_PLAN_OVERRIDES applied."""
    name = plan if plan in PLAN_CONFIGS else DEFAULT_PLAN
    config = PLAN_CONFIGS[name]
    overrides = dict(getattr(settings, "PREFLIGHT_PLAN_OVERRIDES", {}).get(name, {}))
    if "allowed_formats" in overrides:
        overrides["allowed_formats"] = frozenset(overrides["allowed_formats"])
    return replace(config, **overrides) if overrides else config
