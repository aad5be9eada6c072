"""Shape and range validation for submitted coefficient sets.

Pure functions, no DB. Only shape and range are enforced here; the agronomic
meaning of the numbers is the submitter's concern.
"""

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt
from pydantic import ValidationError as PydanticValidationError

from kc_review.errors import ValidationError

DEFAULT_MAX_MULTIPLIER = 2.0


class CoefficientSet(BaseModel):
    """Four growth-stage multipliers and four stage durations (days).

    Strict types: numeric strings and booleans are rejected, ints are accepted
    as multipliers.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    kc_initial: StrictFloat = Field(..., ge=0.0, allow_inf_nan=False)
    kc_development: StrictFloat = Field(..., ge=0.0, allow_inf_nan=False)
    kc_mid: StrictFloat = Field(..., ge=0.0, allow_inf_nan=False)
    kc_late: StrictFloat = Field(..., ge=0.0, allow_inf_nan=False)
    initial_stage_days: StrictInt = Field(..., ge=0)
    development_stage_days: StrictInt = Field(..., ge=0)
    mid_stage_days: StrictInt = Field(..., ge=0)
    late_stage_days: StrictInt = Field(..., ge=0)

    @property
    def multipliers(self) -> tuple[float, float, float, float]:
        return (self.kc_initial, self.kc_development, self.kc_mid, self.kc_late)

    @property
    def total_days(self) -> int:
        return (
            self.initial_stage_days
            + self.development_stage_days
            + self.mid_stage_days
            + self.late_stage_days
        )


class Provenance(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    source: str | None = Field(default=None, max_length=500)
    submitted_by_name: str | None = Field(default=None, max_length=200)
    submitted_by_email: str | None = Field(default=None, max_length=320)
    notes: str | None = None


def _error_list(exc: PydanticValidationError) -> list[dict]:
    return [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]


def validate_coefficients(
    data: dict | CoefficientSet,
    *,
    season_length: int | None = None,
    max_multiplier: float = DEFAULT_MAX_MULTIPLIER,
) -> CoefficientSet:
    """Validate a coefficient mapping.

    Multipliers must lie in [0, max_multiplier]; durations must be
    non-negative integers and, when ``season_length`` is given, sum to it.
    Raises ValidationError listing every failing field.
    """
    if isinstance(data, CoefficientSet):
        coefficients = data
    else:
        try:
            coefficients = CoefficientSet.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError("Invalid coefficient set", _error_list(e)) from e

    errors = [
        {"field": name, "message": f"must be <= {max_multiplier}"}
        for name, value in coefficients.model_dump().items()
        if name.startswith("kc_") and value > max_multiplier
    ]
    if season_length is not None:
        if season_length < 0:
            errors.append({"field": "season_length", "message": "must be >= 0"})
        elif coefficients.total_days != season_length:
            errors.append({
                "field": "season_length",
                "message": f"stage durations sum to {coefficients.total_days}, expected {season_length}",
            })

    if errors:
        raise ValidationError("Invalid coefficient set", errors)
    return coefficients


def validate_provenance(data: dict | Provenance | None) -> Provenance:
    if data is None:
        return Provenance()
    if isinstance(data, Provenance):
        return data
    try:
        return Provenance.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("Invalid provenance", _error_list(e)) from e
