from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    DISBURSER = "disburser"


class IdentifierKind(str, Enum):
    NATIONAL_ID = "national_id"
    PASSPORT = "passport"
    BIRTH_CERTIFICATE = "birth_certificate"
    VOTER_CARD = "voter_card"
    REFUGEE_ID = "refugee_id"
    FEATURES = "features"           # free-text distinguishing features


class AllocationState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    CHECKING_DUPLICATE = "checking_duplicate"
    FRAUD_REJECTED = "fraud_rejected"
    COMMITTING = "committing"
    STOCK_ADJUSTING = "stock_adjusting"
    SUCCESS = "success"
    FAILED = "failed"


class AllocationOutcome(str, Enum):
    SUCCESS = "success"
    FRAUD_REJECTED = "fraud_rejected"


class FraudCheckType(str, Enum):
    DUPLICATE_PAYMENT = "duplicate_payment"
    UNUSUAL_PATTERN = "unusual_pattern"
    MULTIPLE_REGION = "multiple_region"


class NotificationSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


DEFAULT_REGION_NAME = "Default Region"
DEFAULT_DISBURSER_NAME = "Sample Disburser"
DEFAULT_DISBURSER_PHONE = "1234567890"

# Units handed out per goods type in a single allocation
UNITS_PER_ALLOCATION = 1
