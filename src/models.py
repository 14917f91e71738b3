"""
Wire models for the pre-issue access token extension.

The identity provider POSTs one of these events for every access token it is
about to issue, and expects a list of JSON Patch style operations back:

    {
        "actionType": "PRE_ISSUE_ACCESS_TOKEN",
        "event": {
            "request": {
                "clientId": "...",
                "grantType": "client_credentials",
                "additionalHeaders": [{"name": "x-b2b-usp-partner", "value": ["ACME"]}]
            },
            "accessToken": {"scopes": [...], "claims": [...]}
        },
        "allowedOperations": [{"op": "add", "paths": ["/accessToken/scopes/"]}]
    }

Decoding is lenient about missing or null fields (they default to empty values) but
strict about types: a header value that is not a list of strings, for example,
is a malformed request. Unknown fields are ignored.

All models are frozen so an event can't be modified while it is evaluated.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class WireModel(BaseModel):
    """
    Base for camelCase JSON models: populate by alias or field name, immutable.

    An explicit JSON null on an optional field decodes to the field's default,
    so "claims": null reads the same as a missing "claims".
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            field = cls.model_fields[info.field_name]
            if not field.is_required():
                return field.get_default(call_default_factory=True)
        return value


class Header(WireModel):
    """A transport header forwarded by the identity provider."""

    name: str = ""
    values: list[str] = Field(default_factory=list, alias="value")


class Claim(WireModel):
    # Claim values are arbitrary JSON and are never interpreted here.
    name: str = ""
    value: Any = None


class RequestData(WireModel):
    client_id: str = Field(default="", alias="clientId")
    grant_type: str = Field(default="", alias="grantType")
    additional_headers: list[Header] = Field(default_factory=list, alias="additionalHeaders")


class AccessToken(WireModel):
    scopes: list[str] = Field(default_factory=list)
    claims: list[Claim] = Field(default_factory=list)


class RefreshToken(WireModel):
    claims: list[Claim] = Field(default_factory=list)


class IssuanceEvent(WireModel):
    """The token issuance event: the original token request plus the token being built."""

    request: RequestData = Field(default_factory=RequestData)
    access_token: AccessToken = Field(default_factory=AccessToken, alias="accessToken")
    refresh_token: RefreshToken | None = Field(default=None, alias="refreshToken")

    @property
    def client_id(self) -> str:
        return self.request.client_id

    @property
    def additional_headers(self) -> list[Header]:
        return self.request.additional_headers


class AllowedOperation(WireModel):
    op: str = ""
    paths: list[str] = Field(default_factory=list)


class ExtensionRequest(WireModel):
    """The full callback body."""

    action_type: str = Field(default="", alias="actionType")
    event: IssuanceEvent = Field(default_factory=IssuanceEvent)
    allowed_operations: list[AllowedOperation] = Field(
        default_factory=list, alias="allowedOperations"
    )


class ActionStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    ERROR = "ERROR"


class PatchOperation(WireModel):
    """One mutation of the token being issued, e.g. appending a scope."""

    op: str
    path: str
    value: Any = None


class DecisionResult(WireModel):
    """
    Outcome of one evaluation, shaped like the extension response.

    Failure fields are only populated for FAILED, error fields only for ERROR.
    Use to_response() to get the JSON body; empty and unset fields are omitted.
    """

    action_status: ActionStatus = Field(alias="actionStatus")
    operations: list[PatchOperation] = Field(default_factory=list)
    failure_reason: str | None = Field(default=None, alias="failureReason")
    failure_description: str | None = Field(default=None, alias="failureDescription")
    error_message: str | None = Field(default=None, alias="errorMessage")
    error_description: str | None = Field(default=None, alias="errorDescription")

    @property
    def scopes(self) -> list[str]:
        """Scope values appended by this result, in operation order."""
        return [operation.value for operation in self.operations]

    def to_response(self) -> dict[str, Any]:
        body = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        if not body["operations"]:
            del body["operations"]
        return body
