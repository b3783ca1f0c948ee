"""tetrisbridge -- HTTP front door for the tetris-server program.

Each request's ``msg`` parameter is written to a freshly spawned
collaborator process, and whatever the collaborator prints on standard
output is returned as the response body. The collaborator's own
protocol is opaque to this package.
"""

__version__ = "0.1.0"
