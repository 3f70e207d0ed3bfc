"""Tool implementations exposed by the server."""
