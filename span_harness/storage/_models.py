"""Pydantic row models and table names for the span storage tables."""

from pydantic import BaseModel, ConfigDict, Field

from span_harness.spans import Span

# --- Table names ---

TABLE_SPAN = "span"
TABLE_DEPENDENCY = "dependency"
TABLE_AUTOCOMPLETE_TAGS = "autocomplete_tags"
TABLE_SERVICE_REMOTE_SERVICES = "service_remote_services"
TABLE_SERVICE_SPANS = "service_spans"
TABLE_TRACE_BY_SERVICE_REMOTE_SERVICE = "trace_by_service_remote_service"
TABLE_TRACE_BY_SERVICE_SPAN = "trace_by_service_span"

SEARCH_TABLES = (
    TABLE_AUTOCOMPLETE_TAGS,
    TABLE_SERVICE_REMOTE_SERVICES,
    TABLE_SERVICE_SPANS,
    TABLE_TRACE_BY_SERVICE_REMOTE_SERVICE,
    TABLE_TRACE_BY_SERVICE_SPAN,
)

MYSQL_TABLE_SPANS = "zipkin_spans"
MYSQL_TABLE_DEPENDENCIES = "zipkin_dependencies"

MYSQL_TABLES = (MYSQL_TABLE_SPANS, MYSQL_TABLE_DEPENDENCIES)


def reset_tables() -> list[str]:
    """Truncation targets for the column store: search tables, then dependencies and spans."""
    return [*SEARCH_TABLES, TABLE_DEPENDENCY, TABLE_SPAN]


# --- Row models ---


class SpanRow(BaseModel):
    """Row model for the span table."""

    model_config = ConfigDict(frozen=True)

    trace_id: str
    id: str
    parent_id: str | None = None
    name: str = ""
    kind: str | None = None
    local_service: str
    remote_service: str | None = None
    timestamp: int
    duration: int = 0
    tags: dict[str, str] = Field(default_factory=dict)
    day: int

    @classmethod
    def from_span(cls, span: Span) -> "SpanRow":
        return cls(
            trace_id=span.trace_id,
            id=span.id,
            parent_id=span.parent_id,
            name=span.name,
            kind=str(span.kind) if span.kind else None,
            local_service=span.local_service,
            remote_service=span.remote_service,
            timestamp=span.timestamp,
            duration=span.duration,
            tags=dict(span.tags),
            day=span.day,
        )

    def to_span(self) -> Span:
        return Span.model_validate(self.model_dump(exclude={"day"}))


class DependencyRow(BaseModel):
    """Row model for the dependency table."""

    model_config = ConfigDict(frozen=True)

    day: int
    parent: str
    child: str
    call_count: int = 0
    error_count: int = 0


class ServiceSpanRow(BaseModel):
    """Row model for service_spans."""

    model_config = ConfigDict(frozen=True)

    service: str
    span_name: str


class ServiceRemoteServiceRow(BaseModel):
    """Row model for service_remote_services."""

    model_config = ConfigDict(frozen=True)

    service: str
    remote_service: str


class AutocompleteTagRow(BaseModel):
    """Row model for autocomplete_tags."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: str


class TraceByServiceSpanRow(BaseModel):
    """Row model for trace_by_service_span."""

    model_config = ConfigDict(frozen=True)

    service: str
    span_name: str
    day: int
    timestamp: int
    trace_id: str
    duration: int = 0


class TraceByServiceRemoteServiceRow(BaseModel):
    """Row model for trace_by_service_remote_service."""

    model_config = ConfigDict(frozen=True)

    service: str
    remote_service: str
    day: int
    timestamp: int
    trace_id: str
