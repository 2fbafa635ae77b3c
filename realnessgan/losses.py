import torch


def kl_divergence(p, q, eps=1e-8):
    """
    Batched KL(p || q) over the outcome axis, averaged over the batch.

    p: [N] anchor (broadcast over the batch) or [B, N] per-sample distributions
    q: [B, N] per-sample distributions
    Differentiable w.r.t. both arguments.
    """
    tmp = p * torch.log((p + eps) / (q + eps))
    return tmp.sum(dim=1).mean()


def discriminator_loss(real_scores, fake_scores, real_anchor, fake_anchor):
    # pull each side toward its own anchor
    return kl_divergence(real_anchor, real_scores) + kl_divergence(fake_anchor, fake_scores)


def generator_loss(real_scores, fake_scores, fake_anchor):
    # close the gap to the real scores while moving away from the fake anchor
    return kl_divergence(real_scores, fake_scores) - kl_divergence(fake_anchor, fake_scores)
