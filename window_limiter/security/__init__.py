"""Rate limiters bound to a single policy."""
