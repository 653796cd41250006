"""Core gameplay primitives (win/draw evaluation and room events).

Kept free of FastAPI concerns so it can be reused by the registry, the transport, and tests.
"""
