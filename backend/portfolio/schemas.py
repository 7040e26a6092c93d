from __future__ import annotations

from typing import Any, Dict, List, Union

from pydantic import BaseModel, ConfigDict, Field


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PaperCreate(ApiModel):
    title: str | None = None
    authors: Union[str, List[str], None] = None
    venue: str | None = None
    year: Union[int, str, None] = None
    keywords: Union[str, List[str], None] = None
    abstract: str | None = None
    doi: str | None = None
    link: str | None = None
    volume: str | None = None
    issue: str | None = None
    page_start: str | None = Field(default=None, alias="pageStart")
    page_end: str | None = Field(default=None, alias="pageEnd")
    type: str | None = None


class PaperUpdateRequest(ApiModel):
    paper_id: int | None = Field(default=None, alias="paperId")
    updates: Dict[str, Any] | None = None


class PaperIdRequest(ApiModel):
    paper_id: int | None = Field(default=None, alias="paperId")


class ReanalyzeRequest(ApiModel):
    limit: int | None = Field(default=None, ge=1, le=100)
    after_id: int = Field(default=0, alias="afterId", ge=0)


class PaperThemesUpdate(ApiModel):
    paper_id: int | None = Field(default=None, alias="paperId")
    theme_ids: List[int] = Field(default_factory=list, alias="themeIds")


class PaperThemeRemove(ApiModel):
    paper_id: int | None = Field(default=None, alias="paperId")
    theme_id: int | None = Field(default=None, alias="themeId")


class PdfLinkRequest(ApiModel):
    paper_title: str | None = Field(default=None, alias="paperTitle")
    paper_year: Union[int, str, None] = Field(default=None, alias="paperYear")
    paper_authors: Union[List[str], str, None] = Field(default=None, alias="paperAuthors")


class RenamePdfRequest(ApiModel):
    old_path: str | None = Field(default=None, alias="oldPath")
    new_name: str | None = Field(default=None, alias="newName")
    paper_id: int | None = Field(default=None, alias="paperId")


class LinkPdfRequest(ApiModel):
    paper_id: int | None = Field(default=None, alias="paperId")
    dropbox_path: str | None = Field(default=None, alias="dropboxPath")
    dropbox_file_id: str | None = Field(default=None, alias="dropboxFileId")


class AdminAuthRequest(ApiModel):
    password: str | None = None


class ResearchQuestion(ApiModel):
    question: str | None = None
    context: Dict[str, Any] | None = None
