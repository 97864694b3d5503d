"""monoctl: network onboarding for a Monolythium (Cosmos + EVM) node."""

__version__ = "0.1.0"
