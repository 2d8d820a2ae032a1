from docstore.engine.database import Database
from docstore.engine.write_queue import WriteQueue

__all__ = ["Database", "WriteQueue"]
