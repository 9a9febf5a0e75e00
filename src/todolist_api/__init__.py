"""
Todo List API package.

Personal todo lists with tags, served by FastAPI and secured by an Amazon
Cognito user pool. Build the application with ``create_app``.
"""

from .main import create_app  # noqa: F401
