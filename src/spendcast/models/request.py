from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from spendcast.models.forecast import Algorithm, PeriodType


class ForecastRequest(BaseModel):
    """Validated options for a forecast-generation call.

    The algorithm is a closed set; omitting it selects the moving average.
    """

    model_config = ConfigDict(extra="forbid")

    period_type: PeriodType = PeriodType.MONTHLY
    category: str | None = None
    algorithm: Algorithm = Algorithm.MOVING_AVERAGE
    confidence_level: float = Field(default=95.0, ge=80, le=99)

    @field_validator("category")
    @classmethod
    def _blank_category_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None
