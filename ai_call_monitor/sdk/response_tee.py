"""
Response duplication for body inspection.

A response body from the transport can be read once. Teeing drains it a
single time and hands back a rebuilt response for the caller together
with the decoded body for inspection, so neither consumer affects the
other.
"""

from typing import Tuple

import httpx


def _rebuild(response: httpx.Response, raw: bytes) -> httpx.Response:
    """Copy ``response`` over an in-memory stream of its raw bytes."""
    clone = httpx.Response(
        status_code=response.status_code,
        headers=response.headers,
        stream=httpx.ByteStream(raw),
        request=response.request,
        extensions=response.extensions,
        history=list(response.history),
        default_encoding=response.default_encoding,
    )
    clone.next_request = response.next_request
    try:
        clone.elapsed = response.elapsed
    except RuntimeError:
        # elapsed is only set for responses that went through a client
        pass
    return clone


def tee_response(response: httpx.Response) -> Tuple[httpx.Response, bytes]:
    """Duplicate a response returned by ``httpx.Client.send``.

    An unread stream is drained once and closed; the returned response is
    a fully read copy with the same status, headers and extensions. A
    response whose body the transport already materialized is re-readable
    as it is and is returned unchanged.

    Args:
        response: Response from the underlying send

    Returns:
        Tuple of (response for the caller, decoded body for inspection)

    Raises:
        httpx.HTTPError: If reading the body fails; the original is closed
    """
    if response.is_stream_consumed:
        return response, response.content

    try:
        raw = b"".join(response.iter_raw())
    finally:
        response.close()

    clone = _rebuild(response, raw)
    clone.read()
    return clone, clone.content


async def atee_response(response: httpx.Response) -> Tuple[httpx.Response, bytes]:
    """Async counterpart of :func:`tee_response` for ``httpx.AsyncClient``."""
    if response.is_stream_consumed:
        return response, response.content

    try:
        raw = b"".join([chunk async for chunk in response.aiter_raw()])
    finally:
        await response.aclose()

    clone = _rebuild(response, raw)
    await clone.aread()
    return clone, clone.content
