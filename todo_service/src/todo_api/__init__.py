"""
Todo Service package.

Authenticated todo-list REST API: registration and login with signed bearer
tokens, per-user todo CRUD backed by a relational store with a read-through
cache. Build the application with `src.todo_api.main.create_app`.
"""

__version__ = "0.1.0"
