from .cinii_client import CiNiiClient
from .math_library_source import MathLibraryPdfSource

__all__ = ["CiNiiClient", "MathLibraryPdfSource"]
