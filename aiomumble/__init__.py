"""Voice session core for Mumble-style voice chat clients."""
