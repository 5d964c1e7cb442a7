"""Who the user is and what the analysis is for; shapes the prompts."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field


class Seniority(str, Enum):
    JUNIOR = "junior"
    MID = "mid"
    SENIOR = "senior"
    STAFF = "staff"
    PRINCIPAL = "principal"
    LEAD = "lead"


class Role(str, Enum):
    BACKEND = "backend"
    FRONTEND = "frontend"
    FULLSTACK = "fullstack"
    DEVOPS = "devops"
    MOBILE = "mobile"
    DATA = "data"
    ML = "ml"
    SECURITY = "security"


class Objective(str, Enum):
    JOB_APPLICATION = "job_application"
    PROMOTION = "promotion"
    YEAR_REVIEW = "year_review"
    PORTFOLIO = "portfolio"
    GENERAL = "general"
    LINKEDIN = "linkedin"
    RESUME_UPDATE = "resume_update"
    SALARY_NEGOTIATION = "salary_negotiation"


SENIORITY_LABELS: Dict[Seniority, str] = {
    Seniority.JUNIOR: "Junior Developer",
    Seniority.MID: "Mid-Level Developer",
    Seniority.SENIOR: "Senior Developer",
    Seniority.STAFF: "Staff Engineer",
    Seniority.PRINCIPAL: "Principal Engineer",
    Seniority.LEAD: "Tech Lead / Engineering Manager",
}

ROLE_LABELS: Dict[Role, str] = {
    Role.BACKEND: "Backend Developer",
    Role.FRONTEND: "Frontend Developer",
    Role.FULLSTACK: "Full Stack Developer",
    Role.DEVOPS: "DevOps Engineer",
    Role.MOBILE: "Mobile Developer",
    Role.DATA: "Data Engineer",
    Role.ML: "ML Engineer",
    Role.SECURITY: "Security Engineer",
}

OBJECTIVE_LABELS: Dict[Objective, str] = {
    Objective.JOB_APPLICATION: "Job Application",
    Objective.PROMOTION: "Internal Promotion",
    Objective.YEAR_REVIEW: "Annual Review",
    Objective.PORTFOLIO: "Portfolio Building",
    Objective.GENERAL: "General Analysis",
    Objective.LINKEDIN: "LinkedIn Profile",
    Objective.RESUME_UPDATE: "Resume Update",
    Objective.SALARY_NEGOTIATION: "Salary Negotiation",
}


class AnalysisContext(BaseModel):
    seniority: Seniority = Seniority.MID
    role: Role = Role.FULLSTACK
    objective: Objective = Objective.GENERAL
    target_job_title: Optional[str] = Field(default=None, alias="targetJobTitle")
    target_company: Optional[str] = Field(default=None, alias="targetCompany")
    years_of_experience: Optional[int] = Field(default=None, alias="yearsOfExperience", ge=0)
    custom_instructions: Optional[str] = Field(default=None, alias="customInstructions")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_profile(
        cls,
        seniority: Optional[str],
        focus: Optional[str],
        years_of_experience: Optional[int],
    ) -> "AnalysisContext":
        """Build a context from the career fields stored on a user row.

        Unknown values fall back to the defaults.
        """
        values: Dict[str, object] = {}
        if seniority in Seniority._value2member_map_:
            values["seniority"] = Seniority(seniority)
        if focus in Role._value2member_map_:
            values["role"] = Role(focus)
        if years_of_experience is not None and years_of_experience >= 0:
            values["years_of_experience"] = years_of_experience
        return cls(**values)

    def describe(self) -> str:
        lines = [
            f"- Seniority: {self.seniority.value}",
            f"- Role: {self.role.value}",
            f"- Objective: {self.objective.value}",
        ]
        if self.years_of_experience:
            lines.append(f"- Years of Experience: {self.years_of_experience}")
        if self.target_job_title:
            lines.append(f"- Target Job Title: {self.target_job_title}")
        if self.target_company:
            lines.append(f"- Target Company: {self.target_company}")
        if self.custom_instructions:
            lines.append(f"- Custom Instructions: {self.custom_instructions}")
        return "\n".join(lines)


DEFAULT_CONTEXT = AnalysisContext()
