"""
# Bulk Import Models

Rows arrive already parsed (CSV parsing happens client side). Each row is validated and applied
independently; failures are collected into `ImportStats.errors` instead of aborting the batch.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class UserImportRow(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


class PairingImportRow(BaseModel):
    mentor_email: Optional[str] = None
    mentee1_email: Optional[str] = None
    mentee2_email: Optional[str] = None
    family_id: Optional[str] = None


class ImportStats(BaseModel):
    total: int = 0
    success: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)
