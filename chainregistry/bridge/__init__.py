"""Bridges between the registry and the outside world.

Modules
-------
protocols
    ``ScriptRunner``, ``ChainClient`` and ``SafeApiClient`` Protocols.
chain_client
    JSON-RPC receipt and code lookups over ``requests``.
safe_client
    Safe Transaction Service lookups over ``requests``.
script_runner
    Runs a deployment script as a subprocess and parses its JSON result.
"""
