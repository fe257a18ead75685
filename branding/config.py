import math
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigError


@dataclass(frozen=True)
class BrandingConfig:
    """
    Compositing parameters, fixed for the duration of a batch.

    - watermark_opacity: alpha of the centered watermark, in [0, 1]
    - watermark_scale: watermark width as a fraction of canvas width, in (0, 1]
    - logo_scale: corner mark width as a fraction of canvas width, in (0, 1]
    - logo_padding: distance in pixels between the corner mark and the edges
    """

    watermark_opacity: float
    watermark_scale: float
    logo_scale: float
    logo_padding: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.watermark_opacity <= 1.0:
            raise ConfigError(
                f"watermark_opacity must be within [0, 1], got {self.watermark_opacity}"
            )
        if not 0.0 < self.watermark_scale <= 1.0:
            raise ConfigError(
                f"watermark_scale must be within (0, 1], got {self.watermark_scale}"
            )
        if not 0.0 < self.logo_scale <= 1.0:
            raise ConfigError(f"logo_scale must be within (0, 1], got {self.logo_scale}")
        if not math.isfinite(self.logo_padding) or self.logo_padding < 0:
            raise ConfigError(f"logo_padding must be a finite number >= 0, got {self.logo_padding}")


DEFAULT_BRANDING_CONFIG = BrandingConfig(
    watermark_opacity=0.3,
    watermark_scale=0.65,
    logo_scale=0.35,
    logo_padding=50,
)


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str]
    vision_model: str = "gpt-4o-mini"
    vision_timeout: float = 60.0
    log_level: str = "INFO"
    log_json: bool = False
    branding: BrandingConfig = DEFAULT_BRANDING_CONFIG


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build settings from environment variables.

    The credential is passed through untouched; only its presence matters
    to the rest of the pipeline.
    """
    env = os.environ if environ is None else environ
    defaults = DEFAULT_BRANDING_CONFIG

    branding = BrandingConfig(
        watermark_opacity=_float(env, "BRANDING_WATERMARK_OPACITY", defaults.watermark_opacity),
        watermark_scale=_float(env, "BRANDING_WATERMARK_SCALE", defaults.watermark_scale),
        logo_scale=_float(env, "BRANDING_LOGO_SCALE", defaults.logo_scale),
        logo_padding=_float(env, "BRANDING_LOGO_PADDING", defaults.logo_padding),
    )

    return Settings(
        openai_api_key=env.get("OPENAI_API_KEY") or None,
        vision_model=env.get("BRANDING_VISION_MODEL") or "gpt-4o-mini",
        vision_timeout=_float(env, "BRANDING_VISION_TIMEOUT", 60.0),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        log_json=_bool(env, "LOG_FORMAT_JSON", False),
        branding=branding,
    )


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}")


def _bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}
