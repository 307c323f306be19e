"""
Shared error handling package.

Centralizes failure classification and failure-to-response routing so
that every error, HTTP or streamed, is translated the same way.
"""
