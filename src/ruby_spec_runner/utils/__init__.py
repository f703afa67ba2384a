"""Shell dialect and path helpers."""
