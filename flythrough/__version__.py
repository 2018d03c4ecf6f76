"""
Version information for the package.
"""

__version__ = "0.1.0"
__author__ = "nkurangafredrick146-code"
__author_email__ = "flythrough@example.com"
__license__ = "MIT"
__description__ = "Keyframed fly-through capture: view-state interpolation and image/movie export"
__url__ = "https://github.com/nkurangafredrick146-code/flythrough"

__all__ = [
    "__version__",
    "__author__",
    "__author_email__",
    "__license__",
    "__description__",
    "__url__",
]
