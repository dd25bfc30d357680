"""
ORM model package. Import all models here so Alembic autogenerate
can discover every table through the shared Base metadata.
"""
from colloquy.models.user import User  # noqa: F401
from colloquy.models.comment import Comment, CommentRating  # noqa: F401
