"""
atkit - an async AT Protocol client SDK

This package implements a client for the AT Protocol (Bluesky) on top of aiohttp and pydantic.
It keeps an authenticated session valid across concurrent requests, builds and dispatches XRPC
calls with a structured error taxonomy, and decodes open ``$type`` unions without losing data
it does not understand.

Key Components:
- client.py: ATProtoClient, the entry point wiring everything together
- atproto: Request building, the middleware chain, dispatch and the session lifecycle
- lexicon: Pydantic models for lexicon objects and the open-union decoder
- api: Endpoint namespaces (actor, feed, graph, notification, video, unspecced, server, repo)
- store.py: Credential stores (memory, Redis, SQL)
- resolve: Handle and DID resolution
- errors.py: The error taxonomy
- config.py: Settings loaded from ATKIT_* environment variables
- metrics.py: StatsD metrics abstraction

Failure handling:
1. Transient failures (502, 503, 504, connection errors, timeouts) are retried up to three
   times with a fixed delay
2. Rate limiting (429) surfaces immediately with the server's retry-after value
3. A rejected refresh token clears the session and raises AuthenticationError
"""
