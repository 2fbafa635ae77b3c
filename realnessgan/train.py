"""
train.py
Command line entry point: train a RealnessGAN on a folder of images and log
losses and samples to TensorBoard.

Run as `realnessgan-train` or `python -m realnessgan.train`.
"""

import argparse

from torch.utils.tensorboard import SummaryWriter

from .config import Config, DiscriminatorConfig, GeneratorConfig
from .data import ImageFolderDataset, ImageLoader
from .trainer import RealnessGANTrainer
from .utils import get_device, make_dir, set_seed


def build_config(args):
    if args.config is not None:
        return Config.load(args.config)
    return Config(
        batch_size=args.batch,
        g_learning_rate=args.g_lr,
        d_learning_rate=args.d_lr,
        reparameterize_in_g_training=args.reparameterize_in_g,
        image_size=args.resolution,
        seed=args.seed,
        generator=GeneratorConfig(latent_size=args.latent_size),
        discriminator=DiscriminatorConfig(number_of_outcomes=args.outcomes, resnet=not args.no_resnet),
    )


def train(args):
    config = build_config(args)
    device = get_device(cpu=args.cpu)
    set_seed(config.seed)

    print("Search images...")
    dataset = ImageFolderDataset(args.data, resolution=config.image_size)
    print(f"{len(dataset)} images found")
    loader = ImageLoader(dataset, num_workers=args.workers)

    make_dir(args.logdir)
    writer = SummaryWriter(args.logdir)
    writer.add_text("config", config.to_json())

    trainer = RealnessGANTrainer(config, device=device, writer=writer, plot_every=args.plot_every)
    try:
        trainer.train(loader, epochs=args.epochs, max_steps=args.max_steps, infer_every=args.infer_every)
    finally:
        writer.close()


# -----------------------------
# CLI
# -----------------------------
def parse_args(argv=None):
    p = argparse.ArgumentParser(description="RealnessGAN training")
    p.add_argument("--data", required=True, help="Path to image folder (recursively searched)")
    p.add_argument("--config", default=None, help="JSON config file; overrides the model/optimizer flags below")
    p.add_argument("--logdir", default="./logdir", help="TensorBoard log directory")
    p.add_argument("--resolution", type=int, default=256, help="Image resolution (square, power of two, 4..256)")
    p.add_argument("--batch", type=int, default=16, help="Batch size")
    p.add_argument("--g-lr", type=float, default=1e-4, dest="g_lr")
    p.add_argument("--d-lr", type=float, default=4e-4, dest="d_lr")
    p.add_argument("--latent-size", type=int, default=256, dest="latent_size")
    p.add_argument("--outcomes", type=int, default=16, help="Number of discrete realness outcomes")
    p.add_argument("--no-resnet", action="store_true", dest="no_resnet", help="Plain (non-residual) D blocks")
    p.add_argument("--reparameterize-in-g", action="store_true", dest="reparameterize_in_g",
                   help="Sample D logits during the generator update too")
    p.add_argument("--epochs", type=int, default=1_000_000)
    p.add_argument("--max-steps", type=int, default=None, dest="max_steps", help="Stop after this many steps")
    p.add_argument("--infer-every", type=int, default=10000, dest="infer_every", help="Steps between test renders")
    p.add_argument("--plot-every", type=int, default=1000, dest="plot_every", help="Steps between real/fake plots")
    p.add_argument("--workers", type=int, default=0)
    p.add_argument("--seed", type=int, default=42)
    p.add_argument("--cpu", action="store_true", help="Force CPU")
    return p.parse_args(argv)


def main(argv=None):
    train(parse_args(argv))


if __name__ == "__main__":
    main()
