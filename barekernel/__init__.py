"""A small teaching kernel modelled in Python: BMFS disk images, module packing, allocators, scheduling, IPC and a shell parser."""

__version__ = "0.1.0"