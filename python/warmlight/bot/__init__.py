"""Chat bot layer: update routing, command handlers, replies and keyboards."""
