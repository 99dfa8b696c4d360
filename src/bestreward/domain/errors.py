class RewardEngineError(Exception):
    status_code = 500
    code = "REWARD_ENGINE_ERROR"


class ValidationError(RewardEngineError):
    """Malformed input to a public operation. Never partially applied."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(RewardEngineError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} not found: {resource_id}")
        self.resource = resource
        self.resource_id = resource_id


class CycleError(RewardEngineError):
    """A shared reward group assignment would chain or loop."""

    status_code = 409
    code = "SHARED_GROUP_CYCLE"


class QuotaConflictError(RewardEngineError):
    """Concurrent quota update lost the race. Safe to retry."""

    status_code = 409
    code = "QUOTA_CONFLICT"
