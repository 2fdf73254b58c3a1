"""Location storage, proximity search, nearby caching and live fan-out."""
