"""Dump orchestration: validate a request, then render it slice by slice."""

import logging
import re
from dataclasses import dataclass

from pydump.errors import (
    ConflictingFlagsError,
    MissingSelectFieldError,
    RequestValidationError,
    UnknownSelectFieldError,
)
from pydump.models import DumpRequest
from pydump.pipeline import apply_filter, apply_ranking, extract_rows
from pydump.registry import DomainRegistry, FieldSpec, get_registry
from pydump.render import Renderer
from pydump.selection import resolve
from pydump.sink import open_sink
from pydump.store import SampleSource

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class DumpPlan:
    """Everything derived from a request before the first slice is read."""

    registry: DomainRegistry
    fields: list[FieldSpec]
    select: FieldSpec | None
    pattern: re.Pattern[str] | None


@dataclass(slots=True, frozen=True)
class DumpSummary:
    """Counters reported once a dump finishes."""

    slices: int
    rows: int


def _select_flags(request: DumpRequest) -> list[str]:
    flags = []
    if request.filter_pattern is not None:
        flags.append("--filter")
    if request.sort:
        flags.append("--sort")
    if request.rsort:
        flags.append("--rsort")
    if request.top > 0:
        flags.append("--top")
    return flags


def plan(request: DumpRequest) -> DumpPlan:
    """
    Validate ``request`` and resolve its fields.

    Raises:
        ConflictingFlagsError: Both --sort and --rsort were given.
        MissingSelectFieldError: --filter, --sort, --rsort or --top without --select.
        UnknownSelectFieldError: --select does not name a field of the domain.
        RequestValidationError: Any other malformed request.
        UnknownFieldError: An explicit field or group is unknown.
    """
    registry = get_registry(request.domain)
    domain = request.domain.value

    if request.sort and request.rsort:
        raise ConflictingFlagsError("--sort", "--rsort")
    if request.top < 0:
        raise RequestValidationError(f"--top must not be negative, got {request.top}")
    if request.repeat_title is not None and request.repeat_title < 0:
        raise RequestValidationError(
            f"--repeat-title must not be negative, got {request.repeat_title}"
        )
    if request.begin > request.end:
        raise RequestValidationError("--begin is later than --end")

    flags = _select_flags(request)
    select = None
    if request.select is not None or flags:
        if not registry.supports_select:
            raise RequestValidationError(
                f"{', '.join(flags) or '--select'} is not supported for {domain}"
            )
        if request.select is None:
            raise MissingSelectFieldError(flags[0], domain)
        select = registry.field(request.select)
        if select is None:
            raise UnknownSelectFieldError(request.select, domain)

    pattern = None
    if request.filter_pattern is not None:
        try:
            pattern = re.compile(request.filter_pattern)
        except re.error as e:
            raise RequestValidationError(
                f"invalid --filter pattern '{request.filter_pattern}': {e}"
            ) from e

    fields = resolve(registry, request.selection)
    return DumpPlan(registry=registry, fields=fields, select=select, pattern=pattern)


def dump(request: DumpRequest, source: SampleSource) -> DumpSummary:
    """
    Run one dump over ``[request.begin, request.end]``.

    Each slice is extracted, filtered, ranked and rendered before the next
    one is pulled from ``source``. Source errors stop the run; output already
    written stays in the sink.
    """
    dump_plan = plan(request)
    extract = list(dump_plan.fields)
    if dump_plan.select is not None and dump_plan.select not in extract:
        extract.append(dump_plan.select)

    slices = 0
    with open_sink(request.output) as sink:
        renderer = Renderer(
            sink,
            dump_plan.fields,
            request.output_format,
            repeat_title=request.repeat_title,
            disable_title=request.disable_title,
        )
        for batch in source.batches(request.domain, request.begin, request.end):
            rows = extract_rows(batch.records, extract)
            if dump_plan.pattern is not None:
                rows = apply_filter(rows, dump_plan.select, dump_plan.pattern)
            rows = apply_ranking(rows, dump_plan.select, request.order, request.top)
            logger.debug(
                "Slice %.0f: %d of %d rows", batch.timestamp, len(rows), len(batch.records)
            )
            renderer.render_batch(rows)
            slices += 1
        renderer.finish()

    summary = DumpSummary(slices=slices, rows=renderer.rows_written)
    logger.info(
        "Dumped %d rows from %d slices of %s", summary.rows, summary.slices, request.domain.value
    )
    return summary
