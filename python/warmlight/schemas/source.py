"""Source and quote schemas.

Per-kind source data is stored in `sources.data` as JSON and validated with
the models below when read or edited.
"""

from pydantic import BaseModel, ConfigDict, Field

from warmlight.db.models import SourceKind

__all__ = [
    "BookData",
    "PersonData",
    "ArticleData",
    "SourceOut",
    "SourceFilter",
    "ParsedQuote",
    "QuoteOut",
    "source_data_model",
]


class _SourceData(BaseModel):
    model_config = ConfigDict(extra="ignore")


class BookData(_SourceData):
    author: str = ""
    link_to_info: str = ""
    link_to_author: str = ""


class PersonData(_SourceData):
    link_to_info: str = ""
    title: str = ""
    born_on: int | None = None
    death_on: int | None = None


class ArticleData(_SourceData):
    url: str = ""
    author: str = ""


_DATA_MODELS: dict[SourceKind, type[_SourceData]] = {
    SourceKind.book: BookData,
    SourceKind.person: PersonData,
    SourceKind.article: ArticleData,
}


def source_data_model(kind: SourceKind) -> type[_SourceData] | None:
    """Return the data model for a source kind, or None for unknown sources."""
    return _DATA_MODELS.get(kind)


class SourceOut(BaseModel):
    id: int
    library_id: int
    name: str
    kind: SourceKind
    data: dict | None = None

    model_config = ConfigDict(from_attributes=True)


class SourceFilter(BaseModel):
    """Parsed `/getsources` arguments: a name fragment and an optional kind."""

    text: str = ""
    kind: SourceKind | None = None


class ParsedQuote(BaseModel):
    """A quote message split into its parts.

    The first non-empty line is the text. A `sources:` line lists source
    names; the first one is the main source. `#words` after the first line
    are tags.
    """

    text: str
    main_source: str | None = None
    sources: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class QuoteOut(BaseModel):
    id: int
    library_id: int
    text: str
    main_source: str | None = None

    model_config = ConfigDict(from_attributes=True)
