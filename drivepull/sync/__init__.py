"""Pull engine module: change model, materialization and batched apply."""

from .changes import Change, FileMeta, Op, ResolutionError
from .applier import ApplyResult, BatchApplier
from .handlers import HandlerError, LocalChangeHandler
from .materialize import ContentMaterializer, MaterializeError

__all__ = [
    "Change",
    "FileMeta",
    "Op",
    "ResolutionError",
    "ApplyResult",
    "BatchApplier",
    "HandlerError",
    "LocalChangeHandler",
    "ContentMaterializer",
    "MaterializeError",
]
