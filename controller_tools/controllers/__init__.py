"""Controller discovery and per-vendor battery decoders."""

from .registry import ControllerDecoder, register_decoder, decoders

# Import decoder implementations to trigger registration
from . import nintendo
from . import playstation
from . import xbox
from . import generic

__all__ = [
    'ControllerDecoder',
    'register_decoder',
    'decoders',
]
