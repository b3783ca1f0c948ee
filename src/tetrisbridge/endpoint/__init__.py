"""HTTP endpoint module for tetrisbridge.

Exposes the request bridge over HTTP: the value of a single query
parameter goes in, the collaborator's standard output comes back.
"""
