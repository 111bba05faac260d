"""
AT Protocol Core

This package holds the shared infrastructure every endpoint wrapper is built on: building XRPC
requests, sending them through a middleware chain, classifying failures, and keeping the
session's tokens valid.

Key Components:
- request.py: Pure request building (URLs, repeated query keys, headers, bodies)
- chain.py: Middleware chain over aiohttp (metrics, debug logging, transport errors)
- dispatcher.py: Status classification and the retry policy for transient failures
- session.py: Immutable sessions and the single-flight token refresh
- xrpc.py: Declarative endpoints and the executor composing all of the above

A call flows through these steps:
1. The endpoint asks the session manager for an Authorization header and base URL
2. The request builder produces an immutable RequestDescriptor
3. The dispatcher sends it, re-sending on 502/503/504 and transport failures
4. The response is decoded into the endpoint's output model
5. A 401 ExpiredToken answer triggers one refresh and one re-send
"""
