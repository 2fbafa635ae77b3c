import random
from pathlib import Path

import numpy as np
import torch
from torchvision import utils

from .config import ConfigError

ANCHOR_RANGE = (-2.0, 2.0)

# -----------------------------
# Utilities
# -----------------------------
def make_dir(path):
    Path(path).mkdir(parents=True, exist_ok=True)

def set_seed(seed=42):
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)

def get_device(cpu=False):
    return torch.device("cuda" if torch.cuda.is_available() and not cpu else "cpu")

def lerp(a, b, t):
    return a + (b - a) * t

def sample_noise(size, latent_size, device=None):
    return torch.randn(size, latent_size, device=device)

# -----------------------------
# Anchors
# -----------------------------
def create_anchor(number_of_outcomes, center, samples=1000, generator=None):
    """
    Discrete approximation of N(center, 1) over `number_of_outcomes` equal-width
    bins spanning [-2, 2]. Samples outside the range land in the boundary bins.
    Returns a [number_of_outcomes] tensor summing to 1.
    """
    if number_of_outcomes < 1:
        raise ConfigError(f"number_of_outcomes must be positive, got {number_of_outcomes}")
    if samples < 1:
        raise ConfigError(f"samples must be positive, got {samples}")
    low, high = ANCHOR_RANGE
    x = torch.randn(samples, generator=generator) + center
    x = x.clamp(low, high)
    hist = torch.histc(x, bins=number_of_outcomes, min=low, max=high)
    return hist / hist.sum()

# -----------------------------
# Inference helpers
# -----------------------------
def make_latent_grid(corners, grid_size=8, flatten=True):
    """
    Bilinear interpolation between 4 corner latents (top-left, top-right,
    bottom-left, bottom-right) over a grid_size x grid_size grid.
    corners: [4, latent]
    returns [grid_size * grid_size, latent] (or [grid_size, grid_size, latent])
    """
    if corners.shape[0] != 4:
        raise ValueError(f"expected 4 corner latents, got {corners.shape[0]}")
    t = torch.linspace(0, 1, grid_size, device=corners.device, dtype=corners.dtype)
    rows = t.view(-1, 1, 1)
    cols = t.view(1, -1, 1)
    top = lerp(corners[0], corners[1], cols)
    bottom = lerp(corners[2], corners[3], cols)
    grid = lerp(top, bottom, rows)  # [G, G, latent]
    if flatten:
        return grid.reshape(grid_size * grid_size, -1)
    return grid

def plot_images(writer, tag, images, step, nrow=8):
    """Log a batch of [-1, 1] images as a single grid image."""
    images = ((images.detach() + 1) * 0.5).clamp(0, 1)
    grid = utils.make_grid(images.cpu(), nrow=nrow, normalize=False)
    writer.add_image(tag, grid, global_step=step)
