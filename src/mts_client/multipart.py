"""
Streaming multipart/form-data uploads.

The request body is produced by a writer thread and consumed by ``requests``
through a bounded pipe, so a source of any size is sent without being read
into memory first.
"""

import queue
import threading
from typing import Any, BinaryIO, Iterator

import requests
from loguru import logger
from urllib3.fields import RequestField
from urllib3.filepost import choose_boundary

DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_PIPE_DEPTH = 4

# How often a blocked writer re-checks whether the reader went away.
_POLL_INTERVAL = 0.05

_EOF = object()


class PipeClosedError(Exception):
    """Raised on the write end once the read end has been closed."""


class MultipartStreamError(Exception):
    """The writer thread failed while producing the request body."""


class BodyPipe:
    """
    Bounded in-memory pipe between one writer and one reader.

    ``write`` blocks while ``depth`` chunks are waiting to be read. Iterating
    the pipe yields chunks until the writer closes it. Only the first error
    reported through ``set_error`` is kept.
    """

    def __init__(self, depth: int = DEFAULT_PIPE_DEPTH) -> None:
        self._queue: queue.Queue[object] = queue.Queue(maxsize=depth)
        self._reader_closed = threading.Event()
        self._error_lock = threading.Lock()
        self._error: BaseException | None = None

    @property
    def error(self) -> BaseException | None:
        """First error reported by the writer, if any."""
        return self._error

    def set_error(self, exc: BaseException) -> None:
        with self._error_lock:
            if self._error is None:
                self._error = exc

    def write(self, data: bytes) -> int:
        if data and not self._put(bytes(data)):
            raise PipeClosedError("read end of the pipe is closed")
        return len(data)

    def close(self) -> None:
        """Close the write end. The reader stops once pending chunks are read."""
        self._put(_EOF)

    def close_reader(self) -> None:
        """Close the read end, releasing a writer blocked on a full pipe."""
        self._reader_closed.set()

    def _put(self, item: object) -> bool:
        while not self._reader_closed.is_set():
            try:
                self._queue.put(item, timeout=_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def __iter__(self) -> Iterator[bytes]:
        while not self._reader_closed.is_set():
            item = self._queue.get()
            if item is _EOF:
                if self._error is not None:
                    raise MultipartStreamError(str(self._error)) from self._error
                return
            yield item  # type: ignore[misc]


def part_header(
    boundary: str,
    field_name: str,
    filename: str,
    content_type: str,
) -> bytes:
    """Render the opening boundary and headers of a single file part."""
    field = RequestField(name=field_name, data=b"", filename=filename)
    field.make_multipart(content_type=content_type)
    return f"--{boundary}\r\n{field.render_headers()}".encode("latin-1")


def closing_boundary(boundary: str) -> bytes:
    return f"\r\n--{boundary}--\r\n".encode("latin-1")


def _write_form(
    pipe: BodyPipe,
    source: BinaryIO,
    boundary: str,
    field_name: str,
    filename: str,
    content_type: str,
    chunk_size: int,
) -> None:
    """Write the whole multipart envelope for ``source`` into ``pipe``."""
    try:
        pipe.write(part_header(boundary, field_name, filename, content_type))
        total = 0
        while True:
            chunk = source.read(chunk_size)
            if not chunk:
                break
            total += pipe.write(chunk)
        pipe.write(closing_boundary(boundary))
        logger.debug(f"Multipart writer finished after {total} bytes")
    except PipeClosedError:
        logger.debug("Multipart reader closed before the body was complete")
    except Exception as e:
        pipe.set_error(e)
    finally:
        pipe.close()


def send_multipart(
    session: requests.Session,
    method: str,
    url: str,
    source: BinaryIO,
    *,
    field_name: str = "file",
    filename: str = "file",
    content_type: str = "application/octet-stream",
    params: dict[str, Any] | None = None,
    timeout: float | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    depth: int = DEFAULT_PIPE_DEPTH,
) -> requests.Response:
    """
    Send ``source`` as the only file field of a multipart request.

    The body is streamed (chunked transfer encoding) while a background
    thread encodes it. The thread is always joined before returning; if it
    failed, ``MultipartStreamError`` is raised even when the server answered.

    Args:
        session: Session used to send the request.
        method: HTTP method, usually ``PUT`` or ``POST``.
        url: Target URL.
        source: Readable binary stream with the file contents.
        field_name: Name of the form field.
        filename: File name announced in the part header.
        content_type: Content type of the file part.
        params: Query parameters.
        timeout: Request timeout in seconds.
        chunk_size: Bytes read from ``source`` per chunk.
        depth: Number of chunks the pipe holds before the writer blocks.

    Returns:
        The server response.
    """
    boundary = choose_boundary()
    pipe = BodyPipe(depth)
    writer = threading.Thread(
        target=_write_form,
        args=(pipe, source, boundary, field_name, filename, content_type, chunk_size),
        name="multipart-writer",
        daemon=True,
    )
    writer.start()

    try:
        return session.request(
            method,
            url,
            params=params,
            data=iter(pipe),
            headers={"Content-Type": f"multipart/form-data; boundary={boundary}"},
            timeout=timeout,
        )
    finally:
        pipe.close_reader()
        writer.join()
        if pipe.error is not None:
            raise MultipartStreamError(
                f"writing multipart body failed: {pipe.error}"
            ) from pipe.error
