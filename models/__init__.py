"""
Persistence package.

`storage` is the process-wide DBStorage holder; the application factory
binds it to an engine with `storage.reload(url)`.
"""
from models.db_storage import DBStorage

storage = DBStorage()
