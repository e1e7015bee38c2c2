from therapy_copilot.models.base import Base
from therapy_copilot.models.user import User, Therapist, Client
from therapy_copilot.models.session import TherapySession
from therapy_copilot.models.clinical import TherapistImpressions, AIAnalysis, RiskFlag
from therapy_copilot.models.plan import TreatmentPlan, TreatmentPlanVersion
from therapy_copilot.models.notification import Notification

__all__ = [
    "Base",
    "User",
    "Therapist",
    "Client",
    "TherapySession",
    "TherapistImpressions",
    "AIAnalysis",
    "RiskFlag",
    "TreatmentPlan",
    "TreatmentPlanVersion",
    "Notification",
]
