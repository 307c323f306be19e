"""
Shared module package.

Contains cross-cutting concerns used across the application:
- Response and stream envelopes
- Error taxonomy, failure routing and HTTP error handlers
- Request dispatch adapter
- Logging configuration
"""
