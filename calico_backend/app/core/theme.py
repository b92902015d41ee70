"""
游戏/服务器页面主题配置校验

所有分组均为可选；出现的字段必须是字符串，颜色还需是合法的CSS颜色。
未知字段原样保留。
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, StrictStr, ValidationError, field_validator

HEX_COLOR = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")
RGB_COLOR = re.compile(r"^rgba?\(\s*\d+\s*,\s*\d+\s*,\s*\d+\s*(,\s*[0-1]?(\.\d+)?)?\s*\)$")
HSL_COLOR = re.compile(
    r"^hsla?\(\s*\d+\s*,\s*\d+%\s*,\s*\d+%\s*(,\s*[0-1]?(\.\d+)?)?\s*\)$"
)
NAMED_COLORS = {
    "black",
    "white",
    "red",
    "green",
    "blue",
    "yellow",
    "cyan",
    "magenta",
    "gray",
    "grey",
    "orange",
    "purple",
    "pink",
    "brown",
    "transparent",
}

THEME_ENTITY_TYPES = ("game", "server")


def is_valid_color(color) -> bool:
    if not isinstance(color, str):
        return False
    return bool(
        HEX_COLOR.match(color)
        or RGB_COLOR.match(color)
        or HSL_COLOR.match(color)
        or color.lower() in NAMED_COLORS
    )


class _ThemeSection(BaseModel):
    model_config = ConfigDict(extra="allow")


class ThemeColors(_ThemeSection):
    primary: Optional[StrictStr] = None
    secondary: Optional[StrictStr] = None
    accent: Optional[StrictStr] = None
    background: Optional[StrictStr] = None
    surface: Optional[StrictStr] = None
    text: Optional[StrictStr] = None

    @field_validator("primary", "secondary", "accent", "background", "surface", "text")
    @classmethod
    def check_color(cls, value):
        if value and not is_valid_color(value):
            raise ValueError(f"无效的颜色值: {value}")
        return value


class ThemeTypography(_ThemeSection):
    fontFamily: Optional[StrictStr] = None
    headingFont: Optional[StrictStr] = None


class ThemeImages(_ThemeSection):
    hero: Optional[StrictStr] = None
    icon: Optional[StrictStr] = None
    pattern: Optional[StrictStr] = None


class ThemeLayout(_ThemeSection):
    borderRadius: Optional[StrictStr] = None
    spacing: Optional[StrictStr] = None


class ThemeConfig(_ThemeSection):
    colors: Optional[ThemeColors] = None
    typography: Optional[ThemeTypography] = None
    images: Optional[ThemeImages] = None
    layout: Optional[ThemeLayout] = None


def validate_theme_config(theme_config) -> bool:
    if not isinstance(theme_config, dict):
        return False
    try:
        ThemeConfig.model_validate(theme_config)
    except ValidationError:
        return False
    return True
