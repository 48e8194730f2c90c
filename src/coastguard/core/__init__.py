"""Configuration, shared types and the error taxonomy for CoastGuard."""
