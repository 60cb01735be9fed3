"""Pipeline Authority Service native package exports."""

from packages.relay_shared.envelope import Envelope, EnvelopeKind, EnvelopeMeta
from packages.relay_shared.errors import ErrorCategory, ErrorDetail
from services.state.pipeline_authority.component import SERVICE_COMPONENT_ID
from services.state.pipeline_authority.config import PipelineAuthoritySettings
from services.state.pipeline_authority.domain import (
    CollectorItem,
    CommitEntry,
    HealthStatus,
    PipelineLedger,
    PipelineOwner,
    PipelineReportResult,
    PipelineSearchResult,
    ReconciledCommit,
    Stage,
    StageReport,
    StageResolution,
    StageType,
)
from services.state.pipeline_authority.implementation import (
    DefaultPipelineAuthorityService,
)
from services.state.pipeline_authority.report import LinkageError
from services.state.pipeline_authority.service import (
    PipelineAuthorityService,
    build_pipeline_authority_service,
)
from services.state.pipeline_authority.stages import StageRegistry

__all__ = [
    "SERVICE_COMPONENT_ID",
    "PipelineAuthorityService",
    "PipelineAuthoritySettings",
    "DefaultPipelineAuthorityService",
    "build_pipeline_authority_service",
    "StageRegistry",
    "Stage",
    "StageType",
    "StageResolution",
    "CommitEntry",
    "PipelineLedger",
    "PipelineOwner",
    "CollectorItem",
    "ReconciledCommit",
    "StageReport",
    "PipelineReportResult",
    "PipelineSearchResult",
    "HealthStatus",
    "LinkageError",
    "Envelope",
    "EnvelopeKind",
    "EnvelopeMeta",
    "ErrorCategory",
    "ErrorDetail",
]
