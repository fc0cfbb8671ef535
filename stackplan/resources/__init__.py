"""
Importing this package registers a serializer for every resource kind.
"""
from . import containers, load_balancing, network, tasks  # noqa: F401
