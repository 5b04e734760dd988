"""
MemoryLane backend: entity schema, storage and the HTTP API.
"""
