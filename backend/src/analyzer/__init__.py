# Analyzer module
# Contribution models, filters, the analysis pipeline and resume parsing

from .contribution_filter import ContributionCaps, apply_filters, truncate
from .models import ContributionSnapshot, Repository

__all__ = ["ContributionCaps", "ContributionSnapshot", "Repository", "apply_filters", "truncate"]
