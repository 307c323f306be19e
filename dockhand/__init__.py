"""
Dockhand: service runtime for a container/server management backend.

Application package root. Every outbound response, HTTP or streamed,
leaves through one envelope shape, and every failure is routed exactly
once through a single failure router.

Layers:
    - domain: Server stats ports and domain errors.
    - infrastructure: Adapters implementing domain ports (psutil).
    - interfaces: FastAPI routers, Pydantic schemas, WebSocket endpoints.
    - realtime: Stream sessions, transports, event sources.
    - shared: Cross-cutting concerns (envelopes, errors, dispatch, logging).
"""
