"""Container, image, volume and plugin operations over an injected engine client."""

__version__ = "0.1.0"