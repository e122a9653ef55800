"""Chat rooms: creation, invite codes, membership, and deletion."""
