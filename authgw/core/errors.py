"""Error taxonomy shared by the signing authority and the login flow.

Each error carries the HTTP status and the machine-readable code the route
layer reports, and whether a browser login should be redirected back to the
frontend with the message instead of receiving JSON.
"""

HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_SERVER_ERROR = 500
HTTP_SERVICE_UNAVAILABLE = 503


class GatewayError(Exception):
    """Base class for every error the gateway reports to a caller."""

    error_code = "server_error"
    status_code = HTTP_SERVER_ERROR
    redirect_to_frontend = False
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# -- configuration ----------------------------------------------------------


class ConfigurationError(GatewayError):
    """The operation cannot run with the current configuration."""

    error_code = "configuration_error"


class SigningUnavailable(ConfigurationError):
    """No signing key material is loaded."""

    error_code = "signing_unavailable"
    default_message = "Token signing is not configured"


class NoActiveKey(SigningUnavailable):
    """The key store has no usable active key."""

    error_code = "no_active_key"
    default_message = "No active signing key"


class UnsupportedProvider(ConfigurationError):
    error_code = "unsupported_provider"
    status_code = HTTP_BAD_REQUEST
    default_message = "Invalid provider"


class ProviderNotConfigured(ConfigurationError):
    error_code = "provider_not_configured"
    default_message = "OAuth provider not configured"


# -- protocol ---------------------------------------------------------------


class ProtocolError(GatewayError):
    """The login attempt broke the OAuth protocol; terminal for the attempt."""

    error_code = "invalid_request"
    status_code = HTTP_BAD_REQUEST


class ProviderError(ProtocolError):
    """The identity provider reported an error on the callback."""

    error_code = "provider_error"
    redirect_to_frontend = True
    default_message = "OAuth error"


class MissingParameters(ProtocolError):
    error_code = "missing_parameters"
    default_message = "Missing OAuth parameters"


class StateMismatch(ProtocolError):
    error_code = "state_mismatch"
    default_message = "Invalid state parameter"


class TokenExchangeFailed(ProtocolError):
    error_code = "token_exchange_failed"
    default_message = "Failed to obtain access token from provider"


class IdentityIncomplete(ProtocolError):
    error_code = "identity_incomplete"
    default_message = "Email not provided by OAuth provider"


# -- upstream ---------------------------------------------------------------


class UpstreamError(GatewayError):
    """A provider or the Directory could not be reached."""

    error_code = "service_unavailable"
    status_code = HTTP_SERVICE_UNAVAILABLE
    redirect_to_frontend = True
    default_message = "Service temporarily unavailable. Please try again."


class ProviderUnavailable(UpstreamError):
    error_code = "provider_unavailable"


class DirectoryUnavailable(UpstreamError):
    error_code = "directory_unavailable"


# -- authorization ----------------------------------------------------------


class AuthorizationError(GatewayError):
    error_code = "access_denied"
    status_code = HTTP_FORBIDDEN
    redirect_to_frontend = True


class UserNotProvisioned(AuthorizationError):
    error_code = "user_not_provisioned"
    default_message = "Account not provisioned. Contact your administrator."


# -- tokens -----------------------------------------------------------------


class TokenError(GatewayError):
    """A presented token must not be treated as valid."""

    error_code = "invalid_token"
    status_code = HTTP_UNAUTHORIZED
    default_message = "Invalid token"


class Expired(TokenError):
    error_code = "token_expired"
    default_message = "Token expired"


class InvalidSignature(TokenError):
    error_code = "invalid_signature"
    default_message = "Token signature is invalid"


class ClaimMismatch(TokenError):
    error_code = "claim_mismatch"
    default_message = "Token claims do not match"


class MalformedToken(TokenError):
    error_code = "malformed_token"
    default_message = "Token could not be decoded"


class AllKeysFailed(TokenError):
    error_code = "no_verification_keys"
    default_message = "Token validation failed with all available keys"


# -- key rotation -----------------------------------------------------------


class KeyRotationError(GatewayError):
    error_code = "key_rotation_failed"
    status_code = HTTP_BAD_REQUEST


class InvalidKeyMaterial(KeyRotationError):
    error_code = "invalid_key_material"
    default_message = "Invalid key format"


class MissingKeyMaterial(KeyRotationError):
    error_code = "missing_key_material"
    default_message = (
        "JWT_PRIVATE_KEY_NEW and JWT_PUBLIC_KEY_NEW must be set for key rotation"
    )


class UnknownKey(KeyRotationError):
    error_code = "unknown_key"
    status_code = HTTP_NOT_FOUND
    default_message = "Key not found"
