"""Constants for the Secrets Broker Operator."""

# API Group
API_GROUP = "secrets.cloud37.dev"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_BROKERED_SECRET = "BrokeredSecret"
PLURAL_BROKERED_SECRETS = "brokeredsecrets"

# Labels
LABEL_MANAGED_BY = f"{API_GROUP}/managed-by"
LABEL_SOURCE_NAME = f"{API_GROUP}/source-name"

# Field Manager
FIELD_MANAGER = "secrets-broker"

# Phases
PHASE_EMPTY = ""
PHASE_PENDING = "Pending"
PHASE_IN_SYNC = "InSync"
PHASE_STALE = "Stale"
PHASE_ERROR = "Error"

# Condition Types
COND_SECRET_SYNCHRONIZED = "SecretSynchronized"

# Condition Reasons
REASON_SECRET_SYNCHRONIZED = "SecretSynchronized"
REASON_SECRET_DRIFTED = "SecretDrifted"
REASON_PROVIDER_UNAVAILABLE = "ProviderUnavailable"
REASON_PROVIDER_REJECTED = "ProviderRejected"
REASON_SOURCE_NOT_FOUND = "SourceNotFound"
REASON_MISSING_SOURCE_FIELD = "MissingSourceField"
REASON_INVALID_SPEC = "InvalidSpec"
REASON_SECRET_OWNED_ELSEWHERE = "SecretOwnedElsewhere"
REASON_SECRET_KIND_MISMATCH = "SecretKindMismatch"

# Event Reasons
EVENT_REASON_SECRET_CREATED = "SecretCreated"
EVENT_REASON_SECRET_UPDATED = "SecretUpdated"
EVENT_REASON_SECRET_ADOPTED = "SecretAdopted"
EVENT_REASON_DRIFT_DETECTED = "DriftDetected"
EVENT_REASON_SYNC_FAILED = "SyncFailed"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
