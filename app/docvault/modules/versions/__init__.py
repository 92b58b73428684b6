"""
Versions module.

- Versions are immutable snapshots of a document's content
- Listing is newest first; ties fall back to insertion order
- Restore goes through the ordinary document update path, so it only adds history
"""
