"""
Identity Resolution

Utilities for resolving AT Protocol identifiers (DIDs, handles) to their canonical forms.

Key Components:
- handle.py: Handle and DID resolution, and PDS discovery from DID documents
- __main__.py: CLI interface for resolution (``atkit-resolve``)

Resolution Types:
1. Handle Resolution
   - DNS-based resolution via TXT records (_atproto.{handle})
   - HTTP-based resolution via well-known endpoints (.well-known/atproto-did)

2. DID Resolution
   - did:plc method resolution via PLC directory
   - did:web method resolution via well-known endpoints

The client uses these to find the PDS of an account before logging in, and the session manager
uses ``service_endpoint_from_did_document`` to route authenticated calls to the account's PDS.
"""
