"""Room message streams, client sessions, and the real-time endpoints."""
