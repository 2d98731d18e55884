from enum import Enum

# Stored as plain strings; the values are part of the API contract.


class PlanEnum(str, Enum):
    FREE = "Free"
    PRO = "Pro"
    ENTERPRISE = "Enterprise"


class RiskLevelEnum(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class LifecycleStageEnum(str, Enum):
    NEW_USER = "new_user"
    GROWING_USER = "growing_user"
    MATURE_USER = "mature_user"
    MATURE_SAFE = "mature_safe"
    HIGH_RISK_MATURE = "high_risk_mature"
    MEDIUM_RISK_MATURE = "medium_risk_mature"
    # CSV uploads skip lifecycle analysis and are tagged with this instead.
    ANALYZED = "analyzed"


class SignalSourceEnum(str, Enum):
    SDK = "sdk"
    CSV = "csv"


class HealthStatusEnum(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
