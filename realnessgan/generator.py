import math

import torch
import torch.nn as nn
import torch.nn.functional as F

from .config import RESOLUTIONS, validate_image_size
from .spectral_norm import he_normal_


class GBlock(nn.Module):
    def __init__(self, in_ch, out_ch, initial=False, enable_batch_norm=True):
        super().__init__()
        if initial:
            # 1x1 latent map -> 4x4
            self.conv = nn.ConvTranspose2d(in_ch, out_ch, kernel_size=4, bias=False)
        else:
            self.conv = nn.Conv2d(in_ch, out_ch, kernel_size=4, padding="same", bias=False)
        he_normal_(self.conv.weight)
        self.bn = nn.BatchNorm2d(out_ch) if enable_batch_norm else None
        self.act = nn.LeakyReLU(0.2)

    def forward(self, x, training):
        x = self.conv(x)
        if self.bn is not None:
            x = F.batch_norm(x, self.bn.running_mean, self.bn.running_var,
                             self.bn.weight, self.bn.bias,
                             training, self.bn.momentum, self.bn.eps)
        return self.act(x)


class Generator(nn.Module):
    """
    Latent vector -> [N, 3, image_size, image_size] image in [-1, 1].

    Blocks exist for every resolution from 4x4 to 256x256; the ones above
    `image_size` are zero-channel so the parameter tree has the same keys at
    every configured resolution.
    """

    def __init__(self, config, image_size):
        super().__init__()
        config.validate()
        log_res = validate_image_size(image_size)
        self.image_size = image_size
        self.latent_size = config.latent_size
        self.upsample_mode = config.upsample_mode

        def io_channels(res):
            if res > image_size:
                return 0, 0
            d = log_res - int(math.log2(res))
            out_c = config.base_channels << d
            return min(out_c * 2, config.max_channels), min(out_c, config.max_channels)

        self.blocks = nn.ModuleDict()
        for res in RESOLUTIONS:
            in_c, out_c = io_channels(res)
            if res == 4:
                in_c = config.latent_size
            self.blocks[f"x{res}"] = GBlock(in_c, out_c, initial=(res == 4),
                                            enable_batch_norm=config.enable_batch_norm)

        self.to_rgb = nn.Conv2d(config.base_channels, 3, kernel_size=3, padding=1, bias=False)
        he_normal_(self.to_rgb.weight)

    @property
    def active_resolutions(self):
        return [res for res in RESOLUTIONS if res <= self.image_size]

    def upsample(self, x):
        align_corners = False if self.upsample_mode == "bilinear" else None
        return F.interpolate(x, scale_factor=2, mode=self.upsample_mode, align_corners=align_corners)

    def forward(self, z, training=None):
        """
        z: [N, latent_size]
        returns images [N, 3, H, W]
        """
        if training is None:
            training = self.training
        x = z.view(z.shape[0], self.latent_size, 1, 1)
        for res in self.active_resolutions:
            if res > 4:
                x = self.upsample(x)
            x = self.blocks[f"x{res}"](x, training)
        return torch.tanh(self.to_rgb(x))

    @torch.no_grad()
    def infer(self, z, chunk_size):
        """Inference-mode forward over a large batch of latents, chunk_size at a time."""
        chunks = torch.split(z, chunk_size)
        return torch.cat([self(chunk, training=False) for chunk in chunks], dim=0)
