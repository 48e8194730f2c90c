"""CoastGuard: staged coastal risk pipeline and localized alert dispatch."""

__version__ = "0.1.0"
