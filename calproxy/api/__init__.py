"""HTTP surface of calproxy: capability tokens, routes and server."""
