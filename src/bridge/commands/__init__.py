"""Bridge operations invoked by the command-line interface."""
