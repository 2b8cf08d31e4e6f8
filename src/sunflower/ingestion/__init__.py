from .seed_loader import load_planted_items, seed_database

__all__ = [
    "load_planted_items",
    "seed_database",
]
