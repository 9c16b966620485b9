from bookmeter.application.services.holdings_resolver import HoldingsResolver
from bookmeter.application.services.math_library_index import (
    MathLibraryIndex,
    build_math_library_index,
)
from bookmeter.application.services.pacing import PacingPolicy
from bookmeter.application.services.provider_chain import ProviderChain

__all__ = [
    "HoldingsResolver",
    "MathLibraryIndex",
    "build_math_library_index",
    "PacingPolicy",
    "ProviderChain",
]
