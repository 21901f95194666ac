"""Public report models for autocoding."""

from typing import List, Optional
from pydantic import BaseModel, Field

from autocoding.codes import IssueCode


class CodingIssue(BaseModel):
    """A non-fatal problem with a single key during encode or decode."""
    code: IssueCode
    key: str
    type_name: str  # qualified name of the object's class
    message: str


class CodingReport(BaseModel):
    """Outcome of one encode or decode pass over an object."""
    issues: List[CodingIssue] = Field(default_factory=list)  # in key order
    handled_keys: List[str] = Field(default_factory=list)  # keys taken over by override hooks
    type_name: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.issues
