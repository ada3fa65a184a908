from .catalog_documents import seed_catalog

__all__ = ["seed_catalog"]
