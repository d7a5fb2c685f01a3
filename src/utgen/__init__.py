"""utgen: coverage-driven unit test generation agent."""

__version__ = "0.3.0"
