"""Version strings shared by the CLI and the HTTP app."""

SWISSTAX_VERSION = "0.3.0"  # Should match pyproject.toml
SCHEMA_VERSION = "1.0"
