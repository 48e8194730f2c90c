"""Risk scoring: pure primitives, the vulnerability composer and the engine."""
