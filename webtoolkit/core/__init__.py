"""Core utilities and shared primitives.

Modules in this package are small reusable helpers: configuration, errors,
text and file helpers, content sniffing and the outbound JSON relay.
"""
