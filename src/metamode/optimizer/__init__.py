from metamode.optimizer.production import (
    BundleSizeReport,
    ProdDatabase,
    analyze_bundle_size,
    optimize_for_production,
    serialize_compact,
)

__all__ = [
    "BundleSizeReport",
    "ProdDatabase",
    "analyze_bundle_size",
    "optimize_for_production",
    "serialize_compact",
]
