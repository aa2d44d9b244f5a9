"""Daily Progress Report Module (``siteflow_modules.dpr``)."""

from siteflow_modules.dpr.models import (
    Activity,
    DPRRecord,
    DPRSubmission,
    LabourEntry,
    MaterialConsumption,
)
from siteflow_modules.dpr.service import DPRService

__all__ = [
    "Activity",
    "DPRRecord",
    "DPRService",
    "DPRSubmission",
    "LabourEntry",
    "MaterialConsumption",
]
