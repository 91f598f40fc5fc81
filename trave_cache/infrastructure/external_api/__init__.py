"""External HTTP collaborators."""
