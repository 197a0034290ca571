"""Read Anything: document normalization, anchor addressing and citation resolution."""

__version__ = "0.1.0"
