"""
Models for the outcome of building and verifying images.
"""
from typing import List, Optional
from pydantic import BaseModel

class BuildResult(BaseModel):
    """
    Outcome of one image build.
    """
    topology: str
    tag: str
    context_digest: str
    image_id: Optional[str] = None
    dry_run: bool = False
    command: List[str] = []

class CheckResult(BaseModel):
    """
    A single verification check against a built image.
    """
    name: str
    passed: bool
    detail: str = ""

class VerificationReport(BaseModel):
    """
    All checks run against one image.
    """
    tag: str
    checks: List[CheckResult] = []

    @property
    def passed(self) -> bool:
        return bool(self.checks) and all(check.passed for check in self.checks)

    @property
    def failures(self) -> List[CheckResult]:
        return [check for check in self.checks if not check.passed]

    def add(self, name: str, passed: bool, detail: str = "") -> CheckResult:
        check = CheckResult(name=name, passed=passed, detail=detail)
        self.checks.append(check)
        return check
