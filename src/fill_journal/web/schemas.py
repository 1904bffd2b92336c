from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class CsvImportRequest(BaseModel):
    text: str = Field(..., min_length=1)
    source_label: Optional[str] = None
    account_id: Optional[str] = None


class AnnotationRequest(BaseModel):
    note: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class JournalEntryRequest(BaseModel):
    title: str = Field(..., min_length=1)
    strategy_tag: str = ""
    mood: str = ""
    mistakes: str = ""
    lessons: str = ""
    screenshot_urls: list[str] = Field(default_factory=list)
    custom_tags: list[str] = Field(default_factory=list)
    trade_ref: Optional[str] = None
    account_id: Optional[str] = None


class AccountRequest(BaseModel):
    wallet_address: str = Field(..., min_length=1)
    chain: str = "solana"
    label: Optional[str] = None


class SessionRequest(BaseModel):
    active_account_id: Optional[str] = None
    theme: Optional[str] = None
