"""Control packet protocol and the links that carry it to the rover."""
