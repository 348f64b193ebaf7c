"""Adapters bridging third-party markup tooling with the engine."""
