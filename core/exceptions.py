from abc import ABC


class BaseCustomException(Exception, ABC):
    """
    Base class for all custom exceptions.
    """

    def __init__(self, message: str | None = None):
        self.message = message or self.get_default_message()
        super().__init__(self.message)

    def get_default_message(self) -> str:
        """
        Return default error message.

        Returns
        -------
        str
            Default error message
        """
        return "error.unknown"

    def get_status_code(self) -> int:
        """
        Return HTTP status code for exception.

        Returns
        -------
        int
            HTTP status code
        """
        return 500


class BadRequestException(BaseCustomException):
    """Bad request exception (400)."""

    def get_status_code(self) -> int:
        return 400


class NotFoundException(BaseCustomException):
    """Not found exception (404)."""

    def get_status_code(self) -> int:
        return 404


class BadGatewayException(BaseCustomException):
    """Upstream failure exception (502)."""

    def get_status_code(self) -> int:
        return 502


class InvalidAddressException(BadRequestException):
    """Invalid address exception."""

    def get_default_message(self) -> str:
        return "error.address.invalid"


class TransportError(BadGatewayException):
    """
    Network or HTTP level failure talking to the RPC node.

    Parameters
    ----------
    status_code : int | None
        HTTP status code, None when the connection itself failed
    body : str
        Response body or connection error description
    message : str | None
        Overrides the generated message
    """

    def __init__(
        self,
        status_code: int | None = None,
        body: str = "",
        message: str | None = None
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(
            message or f"error.rpc.transport: status={status_code} body={body[:200]}"
        )


class RpcTimeoutError(TransportError):
    """RPC call exceeded the configured timeout."""

    def __init__(self, method: str, timeout: float):
        self.method = method
        self.timeout = timeout
        super().__init__(
            None,
            f"{method} timed out after {timeout}s",
            message=f"error.rpc.timeout: {method} after {timeout}s"
        )

    def get_status_code(self) -> int:
        return 504


class RpcError(BadGatewayException):
    """
    Well-formed JSON-RPC error response.

    Parameters
    ----------
    code : int
        JSON-RPC error code
    rpc_message : str
        JSON-RPC error message
    """

    def __init__(self, code: int, rpc_message: str):
        self.code = code
        self.rpc_message = rpc_message
        super().__init__(f"error.rpc.failed: {rpc_message} (code {code})")


class FormatError(BadGatewayException):
    """Malformed hex quantity or response payload."""

    def get_default_message(self) -> str:
        return "error.format.invalid"


class SubscriptionError(BadGatewayException):
    """Log subscription could not be (re)established."""

    def get_default_message(self) -> str:
        return "error.subscription.failed"


class ContentAPIException(BadGatewayException):
    """
    Content backend returned a non-2xx response or was unreachable.

    Parameters
    ----------
    status_code : int | None
        HTTP status code, None when the connection itself failed
    body : str
        Response body or connection error description
    """

    def __init__(self, status_code: int | None = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"error.content.failed: status={status_code}")
