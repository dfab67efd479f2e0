"""Infrastructure layer: cache tiers and the Redis client."""
