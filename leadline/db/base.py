from leadline.db.base_class import Base

# Import models to register metadata for Base.metadata.create_all in tests
from leadline.models.store_entry import StoreEntry  # noqa: F401
