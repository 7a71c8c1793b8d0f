"""RouteSync GPS route tracking engine and CLI.

Records movement as a stream of position fixes, derives live distance,
speed and duration metrics, and keeps completed sessions as a paginated
history.
"""

__version__ = "0.1.0"

__author__ = "routesync contributors"
__license__ = "Apache-2.0"

__all__ = ["__version__"]
