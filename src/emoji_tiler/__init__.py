"""Split images and animated GIFs into grids of square emoji tiles."""

__version__ = "0.1.0"
