"""Dashboard module (read-only aggregates for the admin home screen)."""
