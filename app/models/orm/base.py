from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import JSON

# JSONB on PostgreSQL, plain JSON (stored as text) everywhere else
JSON_TYPE = JSON().with_variant(JSONB(), "postgresql")


class CustomBase:
    def __repr__(self) -> str:
        columns = ", ".join(
            f"{c.name}={getattr(self, c.name)!r}" for c in self.__table__.columns
        )
        return f"{self.__class__.__name__}({columns})"

    def to_dict(self) -> dict:
        """Column values keyed by column name; relationships are not followed."""
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}


Base = declarative_base(cls=CustomBase)
