"""
Endpoint Namespaces

Thin wrappers for a representative set of lexicon methods, grouped the way the lexicons are.
Each method builds its query parameters or body, clamps values to the ranges the lexicon allows,
and hands a declarative ``Endpoint`` to the executor.

Key Components:
- actor.py: Profiles, search and preferences
- feed.py: Timelines, author feeds, custom feeds, threads, likes and reposts
- graph.py: Followers, follows and lists
- notification.py: Notification listing, unread counts and push registration
- video.py: Upload limits, uploads and job status on the video service
- unspecced.py: Popular feeds, trending topics and suggested feeds
- server.py: Session lifecycle and service-auth tokens
- repo.py: Blob uploads
"""
