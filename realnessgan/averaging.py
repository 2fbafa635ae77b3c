import copy

import torch

from .utils import lerp


class ModelAverage:
    """
    Exponential moving average of a model's parameters:
        avg = beta * avg + (1 - beta) * current
    Buffers (batch norm statistics, spectral norm vectors) are copied as-is.
    The averaged model never receives gradients.
    """

    def __init__(self, model, beta=0.99):
        self.beta = beta
        self.average = copy.deepcopy(model)
        self.average.eval()
        self.average.requires_grad_(False)

    @torch.no_grad()
    def update(self, model):
        for p_avg, p in zip(self.average.parameters(), model.parameters()):
            p_avg.copy_(lerp(p, p_avg, self.beta))
        for b_avg, b in zip(self.average.buffers(), model.buffers()):
            b_avg.copy_(b)
