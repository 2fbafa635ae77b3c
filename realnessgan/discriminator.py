import math

import torch
import torch.nn as nn
import torch.nn.functional as F

from .config import RESOLUTIONS, validate_image_size
from .spectral_norm import SNConv2d, SNLinear


class MinibatchStdConcat(nn.Module):
    """Appends the group-wise feature stddev, averaged to one scalar per sample, as an extra channel."""

    def __init__(self, group_size=4):
        super().__init__()
        self.group_size = group_size

    def forward(self, x):
        N, C, H, W = x.shape
        group = min(self.group_size, N)
        while N % group:
            group -= 1
        y = x.view(group, -1, C, H, W)  # [G, M, C, H, W]
        y = y - y.mean(dim=0, keepdim=True)
        y = torch.sqrt((y ** 2).mean(dim=0) + 1e-8)  # [M, C, H, W]
        y = y.mean(dim=(1, 2, 3), keepdim=True)  # [M, 1, 1, 1]
        y = y.repeat(group, 1, H, W)
        return torch.cat([x, y], dim=1)


class DBlock(nn.Module):
    def __init__(self, in_ch, out_ch, resnet, num_power_iterations=1, spectral_normalization=True):
        super().__init__()
        sn = dict(num_power_iterations=num_power_iterations, spectral_normalization=spectral_normalization)
        self.conv1 = SNConv2d(in_ch, out_ch, 3, padding=1, **sn)
        self.conv2 = SNConv2d(out_ch, out_ch, 4, stride=2, padding=1, **sn)
        self.resnet = resnet
        self.learnable_sc = resnet and in_ch != out_ch
        self.shortcut = SNConv2d(in_ch, out_ch, 1, bias=False, **sn) if self.learnable_sc else None

    def forward(self, x, training):
        out = self.conv1(F.leaky_relu(x, 0.2), training)
        out = self.conv2(F.leaky_relu(out, 0.2), training)
        if not self.resnet:
            return out
        sc = F.avg_pool2d(x, 2)
        if self.learnable_sc:
            sc = self.shortcut(sc, training)
        return out + sc


class Discriminator(nn.Module):
    """
    Image [N, 3, H, W] -> outcome distribution [N, number_of_outcomes].

    `reparameterize` is chosen per call: when set, logits are sampled as
    mean + exp(0.5 * log_var) * noise instead of using the mean directly.
    """

    def __init__(self, config, image_size):
        super().__init__()
        config.validate()
        log_res = validate_image_size(image_size)
        self.image_size = image_size
        self.number_of_outcomes = config.number_of_outcomes
        sn = dict(num_power_iterations=config.num_power_iterations,
                  spectral_normalization=config.spectral_normalization)

        def io_channels(res):
            if res > image_size:
                return 0, 0
            d = log_res - int(math.log2(res))
            in_c = config.base_channels << d
            return min(in_c, config.max_channels), min(in_c * 2, config.max_channels)

        self.from_rgb = SNConv2d(3, config.base_channels, 1, **sn)

        # block "xS" takes an SxS map down to S/2
        self.blocks = nn.ModuleDict()
        for res in reversed(RESOLUTIONS[1:]):
            in_c, out_c = io_channels(res)
            self.blocks[f"x{res}"] = DBlock(in_c, out_c, config.resnet, **sn)

        final_c = io_channels(8)[1] if image_size >= 8 else config.base_channels
        self.minibatch_std = MinibatchStdConcat(config.minibatch_group_size)
        self.tail = SNConv2d(final_c + 1, final_c, 4, **sn)
        # the tail leaves a 1x1 map, so normalize across features per sample
        self.norm = nn.LayerNorm(final_c)

        self.mean_head = SNLinear(final_c, config.number_of_outcomes, **sn)
        self.log_var_head = SNLinear(final_c, config.number_of_outcomes, **sn)

    @property
    def active_resolutions(self):
        return [res for res in reversed(RESOLUTIONS[1:]) if res <= self.image_size]

    def forward(self, x, reparameterize=False, training=None):
        if training is None:
            training = self.training
        x = self.from_rgb(x, training)
        for res in self.active_resolutions:
            x = self.blocks[f"x{res}"](x, training)

        x = F.leaky_relu(x, 0.2)
        x = self.minibatch_std(x)
        x = self.tail(x, training)
        # the variance of the resnet output can be large in early steps
        x = self.norm(x.flatten(1))

        mean = self.mean_head(x, training)
        if reparameterize:
            log_var = self.log_var_head(x, training)
            noise = torch.randn_like(mean)
            logits = mean + torch.exp(0.5 * log_var) * noise
        else:
            logits = mean
        return F.softmax(logits, dim=1)
