class DelayGuardError(Exception):
    code = "DELAYGUARD_ERROR"


class NoContactInformationError(DelayGuardError):
    code = "NO_CONTACT_INFORMATION"

    def __init__(self, order_id: str):
        super().__init__(f"{self.code}: order {order_id} has no email or phone")
        self.order_id = order_id


class InvalidDecisionError(DelayGuardError):
    code = "INVALID_DECISION"


class TrackingProviderError(DelayGuardError):
    code = "TRACKING_PROVIDER_ERROR"


class TrackingNotFoundError(TrackingProviderError):
    code = "TRACKING_NOT_FOUND"


class TrackingRateLimitedError(TrackingProviderError):
    code = "TRACKING_RATE_LIMITED"


class TrackingAuthError(TrackingProviderError):
    code = "TRACKING_AUTH_FAILED"
