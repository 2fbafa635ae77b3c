"""RealnessGAN: a GAN whose discriminator predicts a distribution over realness outcomes."""

from .averaging import ModelAverage
from .config import Config, ConfigError, DiscriminatorConfig, GeneratorConfig
from .discriminator import Discriminator
from .generator import Generator
from .losses import kl_divergence
from .spectral_norm import SNConv2d, SNLinear
from .trainer import RealnessGANTrainer
from .utils import create_anchor

__version__ = "0.1.0"
