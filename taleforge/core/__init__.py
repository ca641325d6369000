"""Core narrative primitives (event schema, decoding, segmentation, and the state store).

Kept free of FastAPI and Redis concerns so it can be reused by API routes, CLI, and tests.
"""
