from .database import RecordStore
from .memory import ContextEntry, ResearchMemory

__all__ = ["RecordStore", "ResearchMemory", "ContextEntry"]
