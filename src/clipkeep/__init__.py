"""
clipkeep - a local, private clipboard history.

clipkeep stores successive clipboard contents in a single SQLite file that
only its owner can read, and gives them back by recency:
- Bounded history with least-recently-used eviction
- Duplicate content refreshes the existing entry instead of repeating it
- Python-style indexes: 0 is the newest entry, -1 the oldest
- Read-only commands never take the database write lock

Example usage:
    $ wl-paste --watch clipkeep store
    $ clipkeep list | fzf | clipkeep get | wl-copy
    $ clipkeep get --index -1
"""

__version__ = "0.1.0"
__author__ = "clipkeep Contributors"

__all__ = [
    "__version__",
    "__author__",
]
