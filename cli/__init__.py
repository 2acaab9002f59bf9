"""stdvis command-line tools."""
