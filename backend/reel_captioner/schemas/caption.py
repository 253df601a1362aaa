from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class CaptionSpec(BaseModel):
    """One text overlay: content, timing window, position and style.

    Accepts the editor's camelCase payload (``x``/``xPct``, ``startTime``...)
    as well as snake_case. Positions are percentages of the output canvas and
    are deliberately not clamped here.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str | None = None
    text: str = ""
    x_pct: float = Field(50.0, validation_alias=AliasChoices("x", "xPct", "x_pct"))
    y_pct: float = Field(50.0, validation_alias=AliasChoices("y", "yPct", "y_pct"))
    start_time: float = Field(0.0, validation_alias=AliasChoices("startTime", "start_time"))
    end_time: float = Field(3.0, validation_alias=AliasChoices("endTime", "end_time"))
    font_size: float = Field(24.0, validation_alias=AliasChoices("fontSize", "font_size"))
    color: str = "#ffffff"
    background_color: str = Field(
        "#000000", validation_alias=AliasChoices("backgroundColor", "background_color")
    )
    font_weight: str = Field("600", validation_alias=AliasChoices("fontWeight", "font_weight"))
    text_align: Literal["left", "center", "right"] = Field(
        "center", validation_alias=AliasChoices("textAlign", "text_align")
    )

    @field_validator("font_weight", mode="before")
    @classmethod
    def _weight_as_string(cls, v: object) -> object:
        # The editor sends "600"; CSV imports may send 600
        if isinstance(v, (int, float)):
            return str(int(v))
        return v

    @property
    def is_bold(self) -> bool:
        weight = self.font_weight.strip().lower()
        if weight in ("bold", "bolder"):
            return True
        return weight.isdigit() and int(weight) >= 600
