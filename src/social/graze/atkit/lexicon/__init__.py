"""
Lexicon Models

Pydantic models for the lexicon objects exchanged with AT Protocol services, grouped by
namespace.

Key Components:
- union.py: Open-world ``$type`` union decoding and the ``LexiconModel`` base
- actor.py: Profiles and the preferences union
- embed.py: Embeds as written in records and as rendered in views
- feed.py: Posts, feed pages and thread nodes
- graph.py: Follows and lists
- notification.py, video.py, unspecced.py, server.py, repo.py: The remaining namespaces

Wire names are camelCase and Python attributes snake_case. Every model keeps fields it does not
know about, so objects read from a server can be written back without loss.
"""
