"""
config.py
Hyperparameter records for RealnessGAN training.

Every record is a frozen dataclass validated on construction, so a malformed
configuration fails before any network is built. The networks re-run the
validation of their own sub-config when instantiated directly.
"""

import json
import math
from dataclasses import asdict, dataclass, field
from typing import Tuple

RESOLUTIONS = (4, 8, 16, 32, 64, 128, 256)
UPSAMPLE_MODES = ("nearest", "bilinear")


class ConfigError(ValueError):
    """Raised when a configuration value cannot produce a valid network."""


def _require(condition, message):
    if not condition:
        raise ConfigError(message)


def validate_image_size(image_size):
    _require(isinstance(image_size, int) and image_size in RESOLUTIONS,
             f"image_size must be one of {RESOLUTIONS}, got {image_size!r}")
    return int(math.log2(image_size))


@dataclass(frozen=True)
class GeneratorConfig:
    latent_size: int = 256
    base_channels: int = 8
    max_channels: int = 256
    upsample_mode: str = "bilinear"
    enable_batch_norm: bool = True

    def __post_init__(self):
        self.validate()

    def validate(self):
        _require(self.latent_size >= 1, f"latent_size must be positive, got {self.latent_size}")
        _require(self.base_channels >= 1, f"base_channels must be positive, got {self.base_channels}")
        _require(self.max_channels >= self.base_channels,
                 f"max_channels ({self.max_channels}) must be >= base_channels ({self.base_channels})")
        _require(self.upsample_mode in UPSAMPLE_MODES,
                 f"upsample_mode must be one of {UPSAMPLE_MODES}, got {self.upsample_mode!r}")


@dataclass(frozen=True)
class DiscriminatorConfig:
    number_of_outcomes: int = 16
    resnet: bool = True
    base_channels: int = 8
    max_channels: int = 256
    num_power_iterations: int = 1
    spectral_normalization: bool = True
    minibatch_group_size: int = 4

    def __post_init__(self):
        self.validate()

    def validate(self):
        _require(self.number_of_outcomes >= 1,
                 f"number_of_outcomes must be positive, got {self.number_of_outcomes}")
        _require(self.base_channels >= 1, f"base_channels must be positive, got {self.base_channels}")
        _require(self.max_channels >= self.base_channels,
                 f"max_channels ({self.max_channels}) must be >= base_channels ({self.base_channels})")
        _require(self.num_power_iterations >= 1,
                 f"num_power_iterations must be positive, got {self.num_power_iterations}")
        _require(self.minibatch_group_size >= 1,
                 f"minibatch_group_size must be positive, got {self.minibatch_group_size}")


@dataclass(frozen=True)
class Config:
    batch_size: int = 16
    g_learning_rate: float = 1e-4
    d_learning_rate: float = 4e-4
    adam_betas: Tuple[float, float] = (0.5, 0.999)
    reparameterize_in_g_training: bool = False

    image_size: int = 256
    ema_beta: float = 0.99

    real_anchor_center: float = 1.0
    fake_anchor_center: float = -1.0
    anchor_samples: int = 1000

    seed: int = 42

    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    discriminator: DiscriminatorConfig = field(default_factory=DiscriminatorConfig)

    def __post_init__(self):
        # JSON gives lists back; keep the record hashable
        object.__setattr__(self, "adam_betas", tuple(self.adam_betas))
        self.validate()

    def validate(self):
        validate_image_size(self.image_size)
        _require(self.batch_size >= 1, f"batch_size must be positive, got {self.batch_size}")
        _require(self.g_learning_rate > 0, f"g_learning_rate must be positive, got {self.g_learning_rate}")
        _require(self.d_learning_rate > 0, f"d_learning_rate must be positive, got {self.d_learning_rate}")
        _require(len(self.adam_betas) == 2 and all(0.0 <= b < 1.0 for b in self.adam_betas),
                 f"adam_betas must be two values in [0, 1), got {self.adam_betas}")
        _require(0.0 <= self.ema_beta < 1.0, f"ema_beta must be in [0, 1), got {self.ema_beta}")
        _require(self.anchor_samples >= 1, f"anchor_samples must be positive, got {self.anchor_samples}")
        self.generator.validate()
        self.discriminator.validate()

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict):
        config_dict = dict(config_dict)
        try:
            generator = GeneratorConfig(**config_dict.pop("generator", {}))
            discriminator = DiscriminatorConfig(**config_dict.pop("discriminator", {}))
            return cls(generator=generator, discriminator=discriminator, **config_dict)
        except TypeError as e:
            # unknown or missing keys
            raise ConfigError(str(e)) from e

    def save(self, filepath):
        """Save configuration to JSON file."""
        with open(filepath, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath):
        """Load configuration from JSON file."""
        with open(filepath, "r") as f:
            return cls.from_dict(json.load(f))

    def to_json(self):
        return json.dumps(self.to_dict(), indent=2)
