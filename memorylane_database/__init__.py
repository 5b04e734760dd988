"""
Relational schema for MemoryLane: table definitions, engine/session
helpers and the table-creation script.
"""
