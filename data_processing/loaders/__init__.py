from .redd_loaders import (
    ReddCountLoader,
    ExclusionListLoader,
    ReservoirLoader,
    SnowpackLoader,
    create_loader
)

__all__ = [
    'ReddCountLoader',
    'ExclusionListLoader',
    'ReservoirLoader',
    'SnowpackLoader',
    'create_loader'
]
