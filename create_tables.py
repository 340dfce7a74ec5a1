from forumdb.database import Base, engine
from forumdb import models  # noqa: F401

print("Creating database tables...")
Base.metadata.create_all(bind=engine)
print("✅ All tables created successfully!")
