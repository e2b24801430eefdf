"""Aggregation pipeline execution and single-stage conveniences.

Each convenience builds a one-stage pipeline (optionally preceded by a
``$match``) and runs it as a single aggregate request.
"""

from typing import Any

from docstore_server.core.session import ConnectionSession
from docstore_server.models.params import (
    AggregateParams,
    GroupParams,
    LimitParams,
    LookupParams,
    ProjectParams,
    SkipParams,
    SortStageParams,
    StageParams,
)
from docstore_server.models.results import OperationResult
from docstore_server.operations.registry import get_collection, registry


async def run_pipeline(
    session: ConnectionSession,
    params: AggregateParams | StageParams,
    pipeline: list[dict[str, Any]],
    operation: str,
    **options: Any,
) -> OperationResult:
    collection = get_collection(session, params)
    cursor = collection.aggregate(pipeline, **options)
    documents = await cursor.to_list(length=None)
    return OperationResult(
        operation=operation,
        summary=f"Aggregation returned {len(documents)} document(s):",
        data=documents,
    )


def with_match(params: StageParams, *stages: dict[str, Any]) -> list[dict[str, Any]]:
    """Prefix ``stages`` with the optional $match from ``params``."""
    pipeline = [{"$match": params.match}] if params.match else []
    pipeline.extend(stages)
    return pipeline


@registry.operation("aggregate", AggregateParams, tags=("aggregation",))
async def aggregate(session: ConnectionSession, params: AggregateParams) -> OperationResult:
    """Run an arbitrary aggregation pipeline."""
    options = {}
    if params.allow_disk_use is not None:
        options["allowDiskUse"] = params.allow_disk_use
    return await run_pipeline(session, params, params.pipeline, "aggregate", **options)


@registry.operation("group-documents", GroupParams, tags=("aggregation",))
async def group_documents(session: ConnectionSession, params: GroupParams) -> OperationResult:
    """Group documents with a $group stage."""
    pipeline = with_match(params, {"$group": params.group})
    return await run_pipeline(session, params, pipeline, "group-documents")


@registry.operation("project-documents", ProjectParams, tags=("aggregation",))
async def project_documents(
    session: ConnectionSession, params: ProjectParams
) -> OperationResult:
    """Reshape documents with a $project stage."""
    pipeline = with_match(params, {"$project": params.projection})
    return await run_pipeline(session, params, pipeline, "project-documents")


@registry.operation("sort-documents", SortStageParams, tags=("aggregation",))
async def sort_documents(
    session: ConnectionSession, params: SortStageParams
) -> OperationResult:
    """Order documents with a $sort stage, optionally capped by $limit."""
    stages: list[dict[str, Any]] = [{"$sort": params.sort}]
    if params.limit:
        stages.append({"$limit": params.limit})
    return await run_pipeline(
        session, params, with_match(params, *stages), "sort-documents"
    )


@registry.operation("limit-documents", LimitParams, tags=("aggregation",))
async def limit_documents(session: ConnectionSession, params: LimitParams) -> OperationResult:
    """Return at most N documents with a $limit stage."""
    pipeline = with_match(params, {"$limit": params.limit})
    return await run_pipeline(session, params, pipeline, "limit-documents")


@registry.operation("skip-documents", SkipParams, tags=("aggregation",))
async def skip_documents(session: ConnectionSession, params: SkipParams) -> OperationResult:
    """Skip the first N documents with a $skip stage."""
    pipeline = with_match(params, {"$skip": params.skip})
    return await run_pipeline(session, params, pipeline, "skip-documents")


@registry.operation("lookup-documents", LookupParams, tags=("aggregation",))
async def lookup_documents(
    session: ConnectionSession, params: LookupParams
) -> OperationResult:
    """Join another collection with a $lookup stage."""
    lookup = {
        "from": params.from_collection,
        "localField": params.local_field,
        "foreignField": params.foreign_field,
        "as": params.as_field,
    }
    pipeline = with_match(params, {"$lookup": lookup})
    return await run_pipeline(session, params, pipeline, "lookup-documents")
