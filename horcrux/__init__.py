"""Configuration, key shard files, cosigner health and nonce caching for a threshold remote signer."""

__version__ = "3.0.0"