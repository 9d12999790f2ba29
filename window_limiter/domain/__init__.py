"""Window state values and the sliding window decision."""
