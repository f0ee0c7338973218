"""tokend: local secrets agent that acquires and renews Vault leases."""

__version__ = "0.1.0"
