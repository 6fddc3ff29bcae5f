"""Desktop shell bridge between an embedded issue page and its host."""
