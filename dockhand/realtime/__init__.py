"""
Real-time delivery package.

Stream sessions, the transports they write to, and the event sources
that drive event-driven sessions.
"""
