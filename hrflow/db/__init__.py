from .models import DispatchRecord
from .dispatch_log import DispatchLogDB

__all__ = [
    "DispatchRecord",
    "DispatchLogDB",
]
