"""AI conversation summaries for a room's recent messages."""
