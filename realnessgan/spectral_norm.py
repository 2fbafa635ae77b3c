"""
spectral_norm.py
Spectrally normalized convolution / dense layers used throughout the discriminator.

Each forward pass estimates the largest singular value (sigma) of the layer's
weight, viewed as a [fan_in, out_features] matrix, with power iteration and
divides the weight by it. The right singular vector estimate `v` is the only
state carried between calls; it is written back only for training-mode calls.
"""

import torch
import torch.nn as nn
import torch.nn.functional as F


def l2normalize(x, eps=1e-8):
    return x * torch.rsqrt((x * x).sum() + eps)


def power_iteration(mat, v, num_iterations=1):
    """
    mat: [rows, cols] weight matrix
    v:   [1, cols] current right singular vector estimate
    Returns (u, v) estimates; no gradient flows through either.
    """
    u = None
    with torch.no_grad():
        for _ in range(num_iterations):
            u = l2normalize(v @ mat.t())  # [1, rows]
            v = l2normalize(u @ mat)      # [1, cols]
    return u, v


class SpectralNorm(nn.Module):
    """Owns the persisted `v` vector for one weight and rescales that weight by 1 / sigma."""

    def __init__(self, out_features, num_power_iterations=1, enabled=True):
        super().__init__()
        self.num_power_iterations = num_power_iterations
        self.enabled = enabled
        self.register_buffer("v", torch.randn(1, out_features))

    def forward(self, weight, training):
        if not self.enabled:
            return weight
        # torch keeps the output dim first; transpose so columns are output channels
        mat = weight.reshape(weight.shape[0], -1).t()
        u, v = power_iteration(mat, self.v, self.num_power_iterations)
        sigma = u @ mat @ v.t()  # [1, 1]
        if training:
            with torch.no_grad():
                self.v.copy_(v)
        # sigma is not guarded: near-singular weights give large effective weights
        return weight / sigma.squeeze()

    def extra_repr(self):
        return f"out_features={self.v.shape[1]}, num_power_iterations={self.num_power_iterations}, enabled={self.enabled}"


def he_normal_(weight):
    # unused resolutions carry zero-sized weights
    if weight.numel() > 0:
        nn.init.kaiming_normal_(weight)
    return weight


class SNConv2d(nn.Module):
    def __init__(self, in_ch, out_ch, kernel_size, stride=1, padding=0, bias=True,
                 num_power_iterations=1, spectral_normalization=True):
        super().__init__()
        self.stride = stride
        self.padding = padding
        self.weight = nn.Parameter(he_normal_(torch.empty(out_ch, in_ch, kernel_size, kernel_size)))
        self.bias = nn.Parameter(torch.zeros(out_ch)) if bias else None
        self.sn = SpectralNorm(out_ch, num_power_iterations, enabled=spectral_normalization)

    def normalized_weight(self, training=False):
        return self.sn(self.weight, training)

    def forward(self, x, training=None):
        if training is None:
            training = self.training
        weight = self.normalized_weight(training)
        return F.conv2d(x, weight, self.bias, stride=self.stride, padding=self.padding)


class SNLinear(nn.Module):
    def __init__(self, in_features, out_features, bias=True,
                 num_power_iterations=1, spectral_normalization=True):
        super().__init__()
        self.weight = nn.Parameter(he_normal_(torch.empty(out_features, in_features)))
        self.bias = nn.Parameter(torch.zeros(out_features)) if bias else None
        self.sn = SpectralNorm(out_features, num_power_iterations, enabled=spectral_normalization)

    def normalized_weight(self, training=False):
        return self.sn(self.weight, training)

    def forward(self, x, training=None):
        if training is None:
            training = self.training
        return F.linear(x, self.normalized_weight(training), self.bias)
