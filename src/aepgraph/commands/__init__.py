"""Built-in CLI sub-commands for aepgraph."""
