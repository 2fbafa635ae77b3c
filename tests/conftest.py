import pytest
import torch

from realnessgan.config import Config, DiscriminatorConfig, GeneratorConfig


@pytest.fixture(autouse=True)
def seed():
    torch.manual_seed(0)


@pytest.fixture
def small_config():
    return Config(
        batch_size=4,
        image_size=8,
        generator=GeneratorConfig(latent_size=8, base_channels=4, max_channels=8),
        discriminator=DiscriminatorConfig(number_of_outcomes=8, base_channels=4, max_channels=8),
    )


@pytest.fixture
def tiny_generator_config():
    return GeneratorConfig(latent_size=8, base_channels=1, max_channels=4)


@pytest.fixture
def tiny_discriminator_config():
    return DiscriminatorConfig(number_of_outcomes=6, base_channels=1, max_channels=4)


class RecordingWriter:
    """Stands in for SummaryWriter; remembers what was logged."""

    def __init__(self):
        self.scalars = []
        self.images = []
        self.flushes = 0

    def add_scalar(self, tag, value, global_step=None):
        self.scalars.append((tag, value, global_step))

    def add_image(self, tag, img, global_step=None):
        self.images.append((tag, tuple(img.shape), global_step))

    def flush(self):
        self.flushes += 1


@pytest.fixture
def writer():
    return RecordingWriter()
