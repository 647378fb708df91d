"""Permission matrix: directed requester -> resource edges."""
