"""Exceptions raised by the decompression models."""


class InvalidParameterError(ValueError):
    """A model parameter, gas mix or compartment index is out of range."""
