"""Developer tooling (architecture checks)."""
