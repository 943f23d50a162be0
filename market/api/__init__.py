"""HTTP interface for the matching market."""
