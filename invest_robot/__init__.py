"""invest-robot: supervised single-instrument trading robots."""
