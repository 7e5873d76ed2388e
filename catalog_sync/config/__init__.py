from catalog_sync.config.config import Config

__all__ = ["Config"]
