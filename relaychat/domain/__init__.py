"""Domain types shared across services: parts, chunk events and errors."""
