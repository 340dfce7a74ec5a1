import uuid


def generate_id() -> str:
    """Generate a primary key for a new row."""
    return str(uuid.uuid4())
