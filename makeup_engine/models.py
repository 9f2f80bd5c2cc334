from __future__ import annotations

from typing import List

import numpy as np
from pydantic import BaseModel, Field, field_validator

from .color import Color, parse_color
from .errors import InvalidInputError
from .landmarks import LANDMARK_COUNT


class PointModel(BaseModel):
    x: float
    y: float


class LandmarkSet(BaseModel):
    points: List[PointModel]

    @field_validator("points")
    @classmethod
    def _check_count(cls, value: List[PointModel]) -> List[PointModel]:
        if len(value) != LANDMARK_COUNT:
            raise ValueError(f"expected {LANDMARK_COUNT} landmarks, got {len(value)}")
        return value

    def to_array(self) -> np.ndarray:
        return np.array([[p.x, p.y] for p in self.points], dtype=np.float32)


class ColorList(BaseModel):
    colors: List[str] = Field(min_length=1)

    @field_validator("colors")
    @classmethod
    def _check_colors(cls, value: List[str]) -> List[str]:
        for item in value:
            try:
                parse_color(item)
            except InvalidInputError as exc:
                raise ValueError(str(exc)) from exc
        return value

    def parsed(self) -> List[Color]:
        return [parse_color(c) for c in self.colors]


class MakeupResponse(BaseModel):
    image: str
    width: int
    height: int
