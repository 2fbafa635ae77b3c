import pytest
import torch

from realnessgan.config import ConfigError, DiscriminatorConfig
from realnessgan.discriminator import DBlock, Discriminator, MinibatchStdConcat
from realnessgan.config import RESOLUTIONS


@pytest.mark.parametrize("image_size", RESOLUTIONS)
@pytest.mark.parametrize("reparameterize", [False, True])
def test_rows_are_distributions(tiny_discriminator_config, image_size, reparameterize):
    D = Discriminator(tiny_discriminator_config, image_size)
    x = torch.rand(4, 3, image_size, image_size) * 2 - 1
    out = D(x, reparameterize=reparameterize)
    assert out.shape == (4, tiny_discriminator_config.number_of_outcomes)
    assert (out >= 0).all()
    assert torch.allclose(out.sum(dim=1), torch.ones(4), atol=1e-5)


def test_reparameterized_output_is_stochastic(tiny_discriminator_config):
    D = Discriminator(tiny_discriminator_config, 16).eval()
    x = torch.rand(4, 3, 16, 16)
    assert not torch.allclose(D(x, reparameterize=True), D(x, reparameterize=True))


def test_direct_output_is_deterministic_in_eval(tiny_discriminator_config):
    D = Discriminator(tiny_discriminator_config, 16).eval()
    x = torch.rand(4, 3, 16, 16)
    first = D(x)
    D(x, reparameterize=True)
    assert torch.equal(first, D(x, reparameterize=False))


def test_log_var_head_only_used_when_reparameterized(tiny_discriminator_config):
    D = Discriminator(tiny_discriminator_config, 8)
    x = torch.rand(4, 3, 8, 8)

    D(x, reparameterize=False)[:, 0].sum().backward()
    assert D.mean_head.weight.grad is not None
    assert D.log_var_head.weight.grad is None

    D.zero_grad()
    D(x, reparameterize=True)[:, 0].sum().backward()
    assert D.log_var_head.weight.grad is not None


def test_unused_resolutions_are_zero_sized(tiny_discriminator_config):
    D = Discriminator(tiny_discriminator_config, 16)
    assert D.active_resolutions == [16, 8]
    for res in (256, 128, 64, 32):
        block = D.blocks[f"x{res}"]
        assert block.conv1.weight.numel() == 0
        assert block.conv2.weight.numel() == 0
    assert D.blocks["x16"].conv1.weight.numel() > 0


def test_channels_double_per_block():
    config = DiscriminatorConfig(number_of_outcomes=4, base_channels=2, max_channels=8)
    D = Discriminator(config, 32)
    assert D.from_rgb.weight.shape[0] == 2
    assert D.blocks["x32"].conv1.weight.shape[:2] == (4, 2)
    assert D.blocks["x16"].conv1.weight.shape[:2] == (8, 4)
    assert D.blocks["x8"].conv1.weight.shape[:2] == (8, 8)
    assert D.tail.weight.shape[:2] == (8, 9)


def test_residual_shortcut_only_when_channels_change():
    changing = DBlock(2, 4, resnet=True)
    assert changing.learnable_sc
    assert changing.shortcut is not None
    same = DBlock(4, 4, resnet=True)
    assert not same.learnable_sc
    assert same.shortcut is None
    plain = DBlock(2, 4, resnet=False)
    assert plain.shortcut is None

    x = torch.randn(2, 2, 8, 8)
    assert changing(x, training=True).shape == (2, 4, 4, 4)
    assert plain(x, training=True).shape == (2, 4, 4, 4)


def test_non_residual_and_unnormalized_variants():
    config = DiscriminatorConfig(number_of_outcomes=5, resnet=False, base_channels=2,
                                 max_channels=4, spectral_normalization=False)
    D = Discriminator(config, 16)
    out = D(torch.rand(4, 3, 16, 16), reparameterize=True)
    assert torch.allclose(out.sum(dim=1), torch.ones(4), atol=1e-5)


def test_eval_mode_leaves_spectral_state_alone(tiny_discriminator_config):
    D = Discriminator(tiny_discriminator_config, 8)
    x = torch.rand(4, 3, 8, 8)
    v_before = D.from_rgb.sn.v.clone()
    D(x, training=False)
    assert torch.equal(D.from_rgb.sn.v, v_before)
    D(x, training=True)
    assert not torch.equal(D.from_rgb.sn.v, v_before)


def test_minibatch_std_appends_one_channel():
    layer = MinibatchStdConcat(group_size=4)
    x = torch.randn(8, 3, 4, 4)
    assert layer(x).shape == (8, 4, 4, 4)
    # batch not divisible by the group size
    assert layer(torch.randn(6, 3, 4, 4)).shape == (6, 4, 4, 4)
    assert layer(torch.randn(1, 3, 4, 4)).shape == (1, 4, 4, 4)


def test_minibatch_std_of_identical_samples_is_small():
    x = torch.randn(1, 3, 4, 4).repeat(4, 1, 1, 1)
    std = MinibatchStdConcat(group_size=4)(x)[:, -1]
    assert std.max().item() < 1e-3


@pytest.mark.parametrize("kwargs", [
    dict(number_of_outcomes=0),
    dict(base_channels=0),
    dict(base_channels=8, max_channels=4),
    dict(num_power_iterations=0),
    dict(minibatch_group_size=0),
])
def test_rejects_malformed_config(kwargs):
    with pytest.raises(ConfigError):
        DiscriminatorConfig(**kwargs)


def test_rejects_unsupported_image_size(tiny_discriminator_config):
    with pytest.raises(ConfigError):
        Discriminator(tiny_discriminator_config, 100)
