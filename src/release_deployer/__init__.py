"""release-deployer: revision deploys with runtime-version checks, atomic cutover and rollback."""

__version__ = "0.1.0"
