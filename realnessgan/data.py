"""
data.py
Image source for training: a folder of images served as shuffled batches of
[B, 3, H, W] float tensors in [0, 1].
"""

from pathlib import Path

import torch
from PIL import Image
from torch.utils.data import DataLoader, Dataset, Subset
from torchvision import transforms
from torchvision.transforms import functional as TF

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff")


class PadToSquare:
    """Pad the shorter side symmetrically so the image becomes square."""

    def __init__(self, fill=255):
        self.fill = fill

    def __call__(self, img):
        w, h = img.size
        size = max(w, h)
        left = (size - w) // 2
        top = (size - h) // 2
        return TF.pad(img, [left, top, size - w - left, size - h - top], fill=self.fill)


# -----------------------------
# Dataset: simple folder dataset
# -----------------------------
class ImageFolderDataset(Dataset):
    def __init__(self, root, resolution=256, flip=True, transform=None):
        """
        root: folder containing images (any nested structure ok)
        resolution: final square size
        flip: random horizontal flip
        """
        root = Path(root)
        if not root.is_dir():
            raise RuntimeError(f"Image directory not found: {root}")
        self.paths = sorted(p for p in root.rglob("*") if p.suffix.lower() in IMAGE_EXTENSIONS)
        if len(self.paths) == 0:
            raise RuntimeError(f"No images found in {root}")
        self.resolution = resolution
        if transform is None:
            ops = [
                PadToSquare(fill=255),
                transforms.Resize((resolution, resolution), interpolation=transforms.InterpolationMode.BILINEAR, antialias=True),
            ]
            if flip:
                ops.append(transforms.RandomHorizontalFlip())
            ops.append(transforms.ToTensor())
            self.transform = transforms.Compose(ops)
        else:
            self.transform = transform

    def __len__(self):
        return len(self.paths)

    def __getitem__(self, idx):
        img = Image.open(self.paths[idx]).convert("RGB")
        return self.transform(img)


class ImageLoader:
    """
    count / shuffle() / iterate(batch_size) view over a dataset.
    Batches are full-size only; a trailing partial batch is dropped.
    """

    def __init__(self, dataset, num_workers=0, generator=None):
        self.dataset = dataset
        self.num_workers = num_workers
        self.generator = generator
        self.order = list(range(len(dataset)))

    @property
    def count(self):
        return len(self.dataset)

    def shuffle(self):
        self.order = torch.randperm(len(self.dataset), generator=self.generator).tolist()

    def iterate(self, batch_size):
        loader = DataLoader(Subset(self.dataset, self.order), batch_size=batch_size,
                            shuffle=False, num_workers=self.num_workers, drop_last=True)
        for images in loader:
            yield images
