"""Built-in CLI command groups (``auth``, ``context``)."""
