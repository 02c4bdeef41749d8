from __future__ import annotations


class DashboardError(RuntimeError):
    """Base class for failures surfaced to the dashboard as readable messages."""

    code = "dashboard_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"error": self.code, "message": self.message}


class NoAccessToken(DashboardError):
    code = "no_access_token"
    status_code = 401

    def __init__(self, message: str = "No access token available. Please log in.") -> None:
        super().__init__(message)


class VerifierUnavailable(DashboardError):
    code = "verifier_unavailable"
    status_code = 500

    def __init__(self, message: str = "Could not generate a PKCE code verifier.") -> None:
        super().__init__(message)


class MissingVerifier(DashboardError):
    code = "missing_verifier"
    status_code = 400

    def __init__(
        self,
        message: str = "No code verifier found. Please start the login again.",
    ) -> None:
        super().__init__(message)


class MissingAuthorizationCode(DashboardError):
    code = "missing_authorization_code"
    status_code = 400

    def __init__(self, message: str = "No authorization code received.") -> None:
        super().__init__(message)


class AuthorizationDenied(DashboardError):
    code = "authorization_denied"
    status_code = 400


class ExchangeFailed(DashboardError):
    code = "exchange_failed"
    status_code = 502


class AuthenticationExpired(DashboardError):
    code = "authentication_expired"
    status_code = 401

    def __init__(
        self,
        message: str = "Authentication expired. Please log in again.",
    ) -> None:
        super().__init__(message)


class AccessForbidden(DashboardError):
    code = "access_forbidden"
    status_code = 403

    def __init__(self, message: str, *, detail: str | None = None, hint: str | None = None) -> None:
        super().__init__(message)
        self.detail = detail
        self.hint = hint

    def to_payload(self) -> dict:
        payload = super().to_payload()
        if self.detail:
            payload["detail"] = self.detail
        if self.hint:
            payload["hint"] = self.hint
        return payload


class RateLimited(DashboardError):
    code = "rate_limited"
    status_code = 429

    def __init__(self, retry_after: int | None = None) -> None:
        wait = 0 if retry_after is None else retry_after
        super().__init__(f"Rate limit exceeded. Please wait {wait} seconds and try again.")
        self.retry_after = retry_after

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["retry_after"] = self.retry_after
        return payload


class ScopeInsufficient(DashboardError):
    code = "scope_insufficient"
    status_code = 403

    def __init__(self, missing: set[str] | frozenset[str]) -> None:
        super().__init__(
            "Your login needs additional permissions for this feature: "
            + " ".join(sorted(missing))
        )
        self.missing = frozenset(missing)

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["missing_scopes"] = sorted(self.missing)
        payload["upgrade_url"] = "/player/upgrade"
        return payload


class InvalidRequest(DashboardError):
    code = "invalid_request"
    status_code = 400


class ApiRequestFailed(DashboardError):
    code = "api_request_failed"

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
