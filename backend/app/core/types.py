"""Column types shared by every model (PostgreSQL in production, SQLite in tests)"""
import uuid

from sqlalchemy import TypeDecorator, String, JSON
from sqlalchemy.dialects.postgresql import JSONB


def generate_uuid() -> str:
    return str(uuid.uuid4())


class GUID(TypeDecorator):
    """
    Identifier column stored as VARCHAR(36).

    Accepts `uuid.UUID` or plain strings and always hands back strings, so
    ids compare equal whether they came from a token, a URL or the database.
    """
    impl = String(36)
    cache_ok = True

    @property
    def python_type(self):
        return str

    def process_bind_param(self, value, dialect):
        if isinstance(value, uuid.UUID):
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        return None if value is None else str(value)


JSONType = JSON().with_variant(JSONB(), "postgresql")
