"""Command-line client for Cloudflare R2.

Profiles live in a TOML registry, secrets in the OS keychain, and storage
operations are dispatched through boto3 with Typer and Rich on the surface.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
