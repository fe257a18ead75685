from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import List

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp"}

BRANDED_SUFFIX = "_branded"


@dataclass(frozen=True)
class ProductItem:
    source_name: str
    data: bytes = field(repr=False)

    @property
    def output_name(self) -> str:
        return output_filename(self.source_name)


def output_filename(source_name: str) -> str:
    """
    `shoe.final.png` -> `shoe.final_branded.jpg`. Only the last extension
    is stripped; collisions are left to the caller.
    """
    name = PurePath(source_name).name
    stem, dot, ext = name.rpartition(".")
    base = stem if dot and ext else name
    return f"{base}{BRANDED_SUFFIX}.jpg"


def load_product_items(products_dir: Path) -> List[ProductItem]:
    """
    Read every supported image directly inside `products_dir`, sorted by
    filename so batch order is reproducible.
    """
    if not products_dir.is_dir():
        return []

    paths = sorted(
        p
        for p in products_dir.iterdir()
        if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
    )
    return [ProductItem(source_name=p.name, data=p.read_bytes()) for p in paths]
