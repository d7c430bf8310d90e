from ._cancel import CancelToken
from ._types import (
    FailureKind,
    Method,
    RelocationFailure,
    RelocationOutcome,
    RelocationPlan,
    RelocationRequest,
    RelocationWarning,
)
from .backend import DirEntry, Filesystem, LocalFilesystem, NodeInfo, NodeKind
from .exceptions import (
    CopyFailedError,
    DestinationExistsError,
    InvalidRequestError,
    PromotionFailedError,
    RelocationCancelled,
    RelocationError,
    SourceNotFoundError,
)
from .mover import Relocator, plan, relocate
from .staging import Artifact, ArtifactKind, SweepReport, list_artifacts, sweep

__all__ = [
    "Relocator", "relocate", "plan", "sweep", "list_artifacts", "CancelToken",
    "RelocationRequest", "RelocationOutcome", "RelocationPlan",
    "RelocationFailure", "RelocationWarning", "FailureKind", "Method",
    "Filesystem", "LocalFilesystem", "NodeInfo", "NodeKind", "DirEntry",
    "Artifact", "ArtifactKind", "SweepReport",
    "RelocationError", "SourceNotFoundError", "DestinationExistsError",
    "InvalidRequestError", "CopyFailedError", "PromotionFailedError",
    "RelocationCancelled",
]
