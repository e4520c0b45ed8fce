"""ExpertDesk AI backend."""
