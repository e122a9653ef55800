"""Document store (DuckDB), typed decoding, and live subscriptions."""
