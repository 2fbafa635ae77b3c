"""
trainer.py
RealnessGAN training orchestration.

Each step draws one latent batch and runs, in order:
  1. a discriminator update, KL-matching real/fake outcome distributions to
     their anchors (discriminator always reparameterized),
  2. a generator update against the just-updated discriminator,
  3. an EMA update of the generator parameters.
"""

import torch
from tqdm import tqdm

from .averaging import ModelAverage
from .discriminator import Discriminator
from .generator import Generator
from .losses import discriminator_loss, generator_loss
from .utils import create_anchor, make_latent_grid, plot_images, sample_noise


class RealnessGANTrainer:
    def __init__(self, config, device=None, writer=None, plot_every=1000,
                 num_test_noises=8, test_batch_size=64, truncation=0.7):
        self.config = config
        self.device = device if device is not None else torch.device("cpu")
        self.writer = writer
        self.plot_every = plot_every

        # models
        self.generator = Generator(config.generator, config.image_size).to(self.device)
        self.discriminator = Discriminator(config.discriminator, config.image_size).to(self.device)
        self.average = ModelAverage(self.generator, beta=config.ema_beta)

        # optimizers
        self.g_optim = torch.optim.Adam(self.generator.parameters(), lr=config.g_learning_rate,
                                        betas=config.adam_betas)
        self.d_optim = torch.optim.Adam(self.discriminator.parameters(), lr=config.d_learning_rate,
                                        betas=config.adam_betas)

        # fixed targets for the whole run
        n = config.discriminator.number_of_outcomes
        self.real_anchor = create_anchor(n, config.real_anchor_center, config.anchor_samples).to(self.device)
        self.fake_anchor = create_anchor(n, config.fake_anchor_center, config.anchor_samples).to(self.device)

        latent_size = config.generator.latent_size
        self.test_noises = [sample_noise(test_batch_size, latent_size, self.device) * truncation
                            for _ in range(num_test_noises)]
        self.test_grid_noises = [make_latent_grid(sample_noise(4, latent_size, self.device) * truncation,
                                                  grid_size=8)
                                 for _ in range(num_test_noises)]

    # -----------------------------
    # Losses
    # -----------------------------
    def compute_d_loss(self, reals, noise, reparameterize=True):
        with torch.no_grad():
            fakes = self.generator(noise)
        real_scores = self.discriminator(reals, reparameterize=reparameterize)
        fake_scores = self.discriminator(fakes, reparameterize=reparameterize)
        loss = discriminator_loss(real_scores, fake_scores, self.real_anchor, self.fake_anchor)
        return loss, fakes

    def compute_g_loss(self, reals, noise, reparameterize=False):
        fakes = self.generator(noise)
        real_scores = self.discriminator(reals, reparameterize=reparameterize)
        fake_scores = self.discriminator(fakes, reparameterize=reparameterize)
        return generator_loss(real_scores, fake_scores, self.fake_anchor)

    # -----------------------------
    # Updates
    # -----------------------------
    def discriminator_step(self, reals, noise, step):
        loss, fakes = self.compute_d_loss(reals, noise, reparameterize=True)

        self.discriminator.zero_grad()
        loss.backward()
        self.d_optim.step()

        loss_d = loss.item()
        if self.writer is not None:
            self.writer.add_scalar("loss/D", loss_d, step)
            if step % self.plot_every == 0:
                plot_images(self.writer, "reals", reals, step)
                plot_images(self.writer, "fakes", fakes, step)
                self.writer.flush()
        return loss_d

    def generator_step(self, reals, noise, step):
        loss = self.compute_g_loss(reals, noise,
                                   reparameterize=self.config.reparameterize_in_g_training)

        # D's parameters pick up gradients here too; only G's optimizer steps
        self.generator.zero_grad()
        loss.backward()
        self.g_optim.step()

        loss_g = loss.item()
        if self.writer is not None:
            self.writer.add_scalar("loss/G", loss_g, step)
        return loss_g

    def train_step(self, reals, step):
        """
        reals: [N, 3, H, W] in [-1, 1]
        Returns (loss_d, loss_g).
        """
        noise = sample_noise(reals.shape[0], self.config.generator.latent_size, self.device)
        loss_d = self.discriminator_step(reals, noise, step)
        loss_g = self.generator_step(reals, noise, step)
        self.average.update(self.generator)
        return loss_d, loss_g

    # -----------------------------
    # Inference
    # -----------------------------
    def infer(self, step):
        """Render the fixed test latents through G and the averaged G; log them if a writer is set."""
        print("infer...")
        chunk_size = self.config.batch_size
        results = {}
        for prefix, generator in (("test", self.generator), ("test_avg", self.average.average)):
            for i, noise in enumerate(self.test_noises):
                results[f"{prefix}_random/{i}"] = generator.infer(noise, chunk_size)
            for i, noise in enumerate(self.test_grid_noises):
                results[f"{prefix}_intpl/{i}"] = generator.infer(noise, chunk_size)

        if self.writer is not None:
            for tag, images in results.items():
                plot_images(self.writer, tag, images, step, nrow=8)
            self.writer.flush()
        return results

    # -----------------------------
    # Training loop
    # -----------------------------
    def train(self, loader, epochs, max_steps=None, infer_every=10000):
        batch_size = self.config.batch_size
        if loader.count < batch_size:
            raise RuntimeError(f"Need at least {batch_size} images for one batch, found {loader.count}")

        self.generator.train()
        self.discriminator.train()

        print("Starting training")
        step = 0
        for epoch in range(epochs):
            loader.shuffle()
            pbar = tqdm(loader.iterate(batch_size), total=loader.count // batch_size,
                        desc=f"Epoch {epoch+1}/{epochs}")
            for images in pbar:
                reals = images.to(self.device) * 2 - 1
                loss_d, loss_g = self.train_step(reals, step)
                pbar.set_postfix({
                    "loss_d": f"{loss_d:.4f}",
                    "loss_g": f"{loss_g:.4f}",
                })

                if step % infer_every == 0:
                    self.infer(step)

                step += 1
                if max_steps is not None and step >= max_steps:
                    break
            if max_steps is not None and step >= max_steps:
                break

        # last inference
        self.infer(step)
        print("Training complete")
        return step
