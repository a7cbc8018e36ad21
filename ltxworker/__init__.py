"""Job queue and worker engine for generating llms.txt files."""

__version__ = "0.1.0"
