"""
Remote API errors.

The orchestration itself never talks to the remote APIs: the hooks do.
But the orchestration must recognise some remote errors, e.g. the dry-run
"validation passed" status, which is delivered as an HTTP error.

The hooks can use any client library. For those based on ``aiohttp``,
`check_response` and `parse_response` convert the erroneous responses
into our own hierarchy of errors, so that the rest of the code does not
depend on the client library's exceptions.

Low-level errors, such as the network connectivity issues, SSL/HTTPS issues,
etc, are escalated from the client library as is, since they are related not
to the remote API, but rather to the networking and encryption.

The original errors of the client library are chained as the causes of our own
specialised errors -- for better explainability of errors in the stack traces.
"""
import collections.abc
import json
from typing import Any, Mapping, Optional

import aiohttp

RawPayload = Mapping[str, Any]


class APIError(Exception):
    """ A remote API error with the HTTP status and the parsed error body. """

    def __init__(
            self,
            payload: Optional[RawPayload],
            *,
            status: int,
    ) -> None:
        message = _extract_message(payload)
        super().__init__(message, payload)
        self._status = status
        self._payload = payload

    def __str__(self) -> str:
        message = self.message
        return f"({self._status}) {message}" if message else f"({self._status})"

    @property
    def status(self) -> int:
        return self._status

    @property
    def code(self) -> Optional[str]:
        error = _extract_error(self._payload)
        return error.get('Code') if error else None

    @property
    def message(self) -> Optional[str]:
        return _extract_message(self._payload)

    @property
    def request_id(self) -> Optional[str]:
        return self._payload.get('RequestId') if self._payload else None


class APIUnauthorizedError(APIError):
    pass


class APIForbiddenError(APIError):
    pass


class APINotFoundError(APIError):
    pass


class APIConflictError(APIError):
    pass


class APIPreconditionFailedError(APIError):
    """ Also used by the remote APIs to report a passed dry-run validation. """


def _extract_error(payload: Optional[RawPayload]) -> Optional[Mapping[str, Any]]:
    error = payload.get('Error') if payload else None
    return error if isinstance(error, collections.abc.Mapping) else None


def _extract_message(payload: Optional[RawPayload]) -> Optional[str]:
    error = _extract_error(payload)
    if error is not None and error.get('Message'):
        return str(error['Message'])
    elif payload and payload.get('message'):
        return str(payload['message'])
    else:
        return None


def get_status(exc: BaseException) -> Optional[int]:
    """
    Get the remote status of an arbitrary error, if it has one.

    Our own errors have it as ``status``. Other libraries' errors often
    have it as ``status`` (aiohttp) or ``status_code`` (many SDKs).
    """
    for attr in ['status', 'status_code']:
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


async def check_response(
        response: aiohttp.ClientResponse,
) -> None:
    """
    Check for specialised remote errors, and raise with extended information.
    """
    if response.status >= 400:

        # Read the response's body before it is closed by raise_for_status().
        payload: Optional[RawPayload]
        try:
            payload = await response.json()
        except (json.JSONDecodeError, aiohttp.ContentTypeError, aiohttp.ClientConnectionError):
            payload = None

        if not isinstance(payload, collections.abc.Mapping):
            payload = None

        cls = (
            APIUnauthorizedError if response.status == 401 else
            APIForbiddenError if response.status == 403 else
            APINotFoundError if response.status == 404 else
            APIConflictError if response.status == 409 else
            APIPreconditionFailedError if response.status == 412 else
            APIError
        )

        # Raise the specialised error while keeping the original error in scope.
        # This call also closes the response's body, so it cannot be read afterwards.
        try:
            response.raise_for_status()
        except aiohttp.ClientResponseError as e:
            raise cls(payload, status=response.status) from e


async def parse_response(
        response: aiohttp.ClientResponse,
) -> Any:
    """
    Check the response for errors, and either raise or return the parsed data.
    """
    await check_response(response)
    payload = await response.json()
    return payload
