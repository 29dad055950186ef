"""Data models shared by the resolver, the synthesizer and the merger.

The resolver produces a HandlerBinding, the synthesizer turns it into an
OperationDescription, and the merger renders that description into the
OpenAPI document.
"""

from pydantic import BaseModel, ConfigDict

BODY_VERBS = ("post", "put", "patch")


class HandlerBinding(BaseModel):
    """The single route registration that binds a handler."""

    model_config = ConfigDict(frozen=True)

    handler_name: str
    scope_name: str
    http_verb: str  # get / post / put / patch / delete / head / options
    route_template: str  # as registered, e.g. /:associationId
    path: str  # full address, e.g. /associations/{associationId}
    path_parameters: tuple[str, ...] = ()
    class_name: str = ""
    source_file: str = ""
    line: int = 0

    @property
    def address(self) -> str:
        return f"{self.http_verb.upper()} {self.path}"


class Param(BaseModel):
    """A single operation parameter (path or query)."""

    name: str
    location: str  # path / query
    required: bool
    param_type: str  # string / integer / number / boolean / array / object


class RequestPayload(BaseModel):
    shape: dict
    shape_name: str
    ref: str | None = None


class ResponseOutcome(BaseModel):
    """Either a reference to a shared response template or an inline outcome."""

    status: str
    description: str
    template: str | None = None
    shape: dict | None = None
    shape_name: str | None = None
    ref: str | None = None


class OperationDescription(BaseModel):
    tag_name: str
    summary: str
    narrative: str
    parameters: list[Param] = []
    request_payload: RequestPayload | None = None
    responses: dict[str, ResponseOutcome] = {}
    security: list[dict] = []

    @property
    def primary_status(self) -> str:
        return next(iter(self.responses))
