"""
Data models for the SQL visualizer

Attributes are snake_case; serialized output uses the camelCase names the
diagram renderer expects (leftTable, rawQuery, nodeSpacing, ...).
"""
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

JoinType = Literal['INNER', 'LEFT', 'RIGHT', 'FULL', 'CROSS']
Theme = Literal['light', 'dark', 'auto']


class VisualizerModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_json(self) -> Dict[str, Any]:
        """JSON-ready dict using the renderer's camelCase names"""
        return self.model_dump(by_alias=True, mode='json')


class Position(VisualizerModel):
    x: int
    y: int


class Table(VisualizerModel):
    id: str
    name: str
    alias: Optional[str] = None
    columns: Tuple[str, ...] = ()
    position: Position


class Join(VisualizerModel):
    id: str
    type: JoinType
    left_table: str
    right_table: str
    condition: str
    position: Position


class Filter(VisualizerModel):
    id: str
    table: str = 'unknown'
    condition: str
    position: Position


class Projection(VisualizerModel):
    id: str
    column: str
    table: Optional[str] = None
    alias: Optional[str] = None
    aggregation: Optional[str] = None
    position: Position


class ParsedQuery(VisualizerModel):
    """Structural graph of one SELECT statement"""
    tables: Tuple[Table, ...] = ()
    joins: Tuple[Join, ...] = ()
    filters: Tuple[Filter, ...] = ()
    projections: Tuple[Projection, ...] = ()
    raw_query: str


class VisualizerSettings(VisualizerModel):
    dark_mode: bool = False
    auto_layout: bool = True
    show_table_columns: bool = True
    node_spacing: int = Field(250, ge=150, le=400)
    theme: Theme = 'light'

    def merge(self, patch: 'SettingsPatch') -> 'VisualizerSettings':
        """
        Shallow-merge the keys a patch explicitly supplies

        Returns:
            A new settings object; unsupplied keys keep their current values
        """
        changes = patch.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return self
        return self.model_validate({**self.model_dump(), **changes})

    def resolve_dark_mode(self, prefers_dark: bool = False) -> bool:
        """Effective dark flag, following the OS preference when theme is auto"""
        return self.dark_mode or self.theme == 'dark' or (self.theme == 'auto' and prefers_dark)


class SettingsPatch(VisualizerModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra='ignore',
    )

    dark_mode: Optional[bool] = None
    auto_layout: Optional[bool] = None
    show_table_columns: Optional[bool] = None
    node_spacing: Optional[int] = Field(None, ge=150, le=400)
    theme: Optional[Theme] = None


class VisualizerState(VisualizerModel):
    """Everything the visualizer shows; parsed_query and error are never both set"""
    query: str
    parsed_query: Optional[ParsedQuery] = None
    settings: VisualizerSettings = Field(default_factory=VisualizerSettings)
    show_settings: bool = False
    is_editing: bool = False
    error: Optional[str] = None
    selected_node: Optional[str] = None


class ExternalConfig(VisualizerModel):
    """Configuration pushed in by the embedding page"""
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra='ignore',
    )

    initial_query: Optional[str] = None
    settings: Optional[SettingsPatch] = None


class ExternalConfigMessage(ExternalConfig):
    type: str


class UIStatePatch(VisualizerModel):
    show_settings: Optional[bool] = None
    is_editing: Optional[bool] = None
    selected_node: Optional[str] = None


class QueryRequest(VisualizerModel):
    query: str
