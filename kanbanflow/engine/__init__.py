"""Task dependency and workflow engine.

Pure functions and small value types operating on loaded ORM aggregates.
Nothing in this package touches a session; services load, call the engine,
and save.
"""
