"""Browser-driven crawlers and their shared types."""
