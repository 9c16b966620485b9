"""Application ports (interfaces) used by the application layer."""

from .biblio_provider_port import BiblioProviderPort, BulkBiblioProviderPort
from .catalog_repository_port import CatalogRepositoryPort
from .library_catalog_port import CatalogSearchHit, LibraryCatalogPort
from .math_library_source_port import MathLibrarySourcePort

__all__ = [
    "BiblioProviderPort",
    "BulkBiblioProviderPort",
    "CatalogRepositoryPort",
    "CatalogSearchHit",
    "LibraryCatalogPort",
    "MathLibrarySourcePort",
]
