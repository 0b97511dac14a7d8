from typing import Any, List, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

REPORT_STATUSES = ("open", "in_progress", "resolved", "closed")

ReportStatus = Literal["open", "in_progress", "resolved", "closed"]


class ReportValidationError(ValueError):
    """Raised when a hazard report payload does not satisfy the schema.

    ``message`` is the first failure, phrased with the offending field
    quoted so it can be returned to the client as-is.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class HazardReportCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reportType: str = Field(min_length=1)
    description: str = Field(min_length=1)
    status: ReportStatus = "open"
    images: List[str] = []


class HazardReportUpdate(BaseModel):
    """Same rules as ``HazardReportCreate`` with every field optional.

    Defaults are not validated, so an omitted field stays unset while an
    explicit ``null`` is still rejected.
    """

    model_config = ConfigDict(extra="forbid")

    reportType: str = Field(default=None, min_length=1)
    description: str = Field(default=None, min_length=1)
    status: ReportStatus = None
    images: List[str] = None


_MESSAGES = {
    "missing": "is required",
    "extra_forbidden": "is not allowed",
    "string_too_short": "is not allowed to be empty",
    "string_type": "must be a string",
    "list_type": "must be an array",
    "literal_error": "must be one of [%s]" % ", ".join(REPORT_STATUSES),
}


def _field_label(loc) -> str:
    label = ""
    for part in loc:
        if isinstance(part, int):
            label += "[%d]" % part
        else:
            label += part if not label else ".%s" % part
    return label or "value"


def first_error_message(exc: ValidationError) -> str:
    error = exc.errors()[0]
    detail = _MESSAGES.get(error["type"])
    if detail is None:
        msg = error["msg"]
        detail = msg[:1].lower() + msg[1:]
    return '"%s" %s' % (_field_label(error["loc"]), detail)


def validate_hazard_report(
    payload: Any, partial: bool = False
) -> Union[HazardReportCreate, HazardReportUpdate]:
    """Validate a report payload.

    Full mode (``partial=False``) enforces required fields and fills
    defaults; partial mode accepts any subset of fields. Raises
    ``ReportValidationError`` with the first failure.
    """
    if not isinstance(payload, Mapping):
        raise ReportValidationError('"value" must be of type object')
    schema = HazardReportUpdate if partial else HazardReportCreate
    try:
        return schema.model_validate(dict(payload))
    except ValidationError as e:
        raise ReportValidationError(first_error_message(e)) from e

